from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.lib import colors
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.enums import TA_CENTER
from xml.sax.saxutils import escape
from io import BytesIO
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from invgen.core.config import settings
from invgen.models.invoice import Invoice
from invgen.models.user import User
from invgen.services.branding import BrandTheme, DEFAULT_THEME
from invgen.utils.exceptions import PDFRenderError

CENT = Decimal("0.01")


def invoice_totals(invoice: Invoice, tax_rate: Decimal) -> dict:
    """Subtotal, tax and grand total shown on the rendered invoice."""
    subtotal = Decimal(invoice.amount)
    tax = (subtotal * tax_rate / 100).quantize(CENT, rounding=ROUND_HALF_UP)
    return {"subtotal": subtotal, "tax": tax, "total": subtotal + tax}


class PDFService:
    def __init__(self, theme: BrandTheme = DEFAULT_THEME, tax_rate: Decimal = None):
        self.theme = theme
        self.tax_rate = settings.TAX_RATE if tax_rate is None else tax_rate
        self.currency = settings.CURRENCY_SYMBOL
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        """Setup custom paragraph styles."""
        self.styles.add(ParagraphStyle(
            name='CustomTitle',
            parent=self.styles['Heading1'],
            fontSize=24,
            textColor=colors.HexColor(self.theme.primary),
            spaceAfter=30,
        ))

        self.styles.add(ParagraphStyle(
            name='SectionHeader',
            parent=self.styles['Heading2'],
            fontSize=12,
            textColor=colors.HexColor(self.theme.secondary),
            spaceAfter=10,
            fontName='Helvetica-Bold'
        ))

    def _money(self, value) -> str:
        return f"{self.currency}{Decimal(value):,.2f}"

    def generate_invoice_pdf(self, invoice: Invoice, user: User) -> bytes:
        """Render an invoice (with its client and items loaded) to PDF bytes."""
        try:
            return self._build(invoice, user)
        except Exception as e:
            raise PDFRenderError(f"Could not render invoice {invoice.invoice_number}") from e

    def _build(self, invoice: Invoice, user: User) -> bytes:
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=letter,
            rightMargin=72,
            leftMargin=72,
            topMargin=72,
            bottomMargin=18,
            title=f"Invoice {invoice.invoice_number}",
        )
        primary = colors.HexColor(self.theme.primary)
        elements = []

        # Company header
        elements.append(Paragraph(escape(user.display_name), self.styles['CustomTitle']))
        if user.email:
            elements.append(Paragraph(f"Email: {escape(user.email)}", self.styles['Normal']))
        elements.append(Spacer(1, 20))

        # Invoice number and dates
        invoice_info_data = [
            ['INVOICE', invoice.invoice_number],
            ['Issue Date:', (invoice.created_at or datetime.utcnow()).strftime('%B %d, %Y')],
            ['Due Date:', invoice.due_date.strftime('%B %d, %Y') if invoice.due_date else '-'],
            ['Status:', invoice.display_status],
        ]
        invoice_info_table = Table(invoice_info_data, colWidths=[2*inch, 3*inch])
        invoice_info_table.setStyle(TableStyle([
            ('ALIGN', (0, 0), (0, -1), 'RIGHT'),
            ('ALIGN', (1, 0), (1, -1), 'LEFT'),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, 0), 16),
            ('FONTSIZE', (0, 1), (-1, -1), 10),
            ('TEXTCOLOR', (0, 0), (-1, 0), primary),
            ('TEXTCOLOR', (0, 1), (-1, -1), colors.HexColor('#666666')),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
        ]))
        elements.append(invoice_info_table)
        elements.append(Spacer(1, 30))

        # Bill To section
        client = invoice.client
        elements.append(Paragraph("BILL TO", self.styles['SectionHeader']))
        for line in (client.company_name, client.contact_name, client.email, client.phone, client.address):
            if line:
                elements.append(Paragraph(escape(line), self.styles['Normal']))
        elements.append(Spacer(1, 30))

        # Items table
        items_data = [['Description', 'Quantity', 'Unit Price', 'Amount']]
        for item in invoice.items:
            items_data.append([
                Paragraph(escape(item.description), self.styles['Normal']),
                f"{Decimal(item.quantity):.2f}",
                self._money(item.unit_price),
                self._money(item.total),
            ])
        items_table = Table(items_data, colWidths=[3.5*inch, 1*inch, 1.25*inch, 1.25*inch], repeatRows=1)
        items_table.setStyle(TableStyle([
            # Header
            ('BACKGROUND', (0, 0), (-1, 0), primary),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, 0), 11),
            ('BOTTOMPADDING', (0, 0), (-1, 0), 12),

            # Body
            ('FONTNAME', (0, 1), (-1, -1), 'Helvetica'),
            ('FONTSIZE', (0, 1), (-1, -1), 10),
            ('TEXTCOLOR', (0, 1), (-1, -1), colors.HexColor('#333333')),
            ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
            ('ALIGN', (0, 0), (0, -1), 'LEFT'),
            ('LINEBELOW', (0, 1), (-1, -1), 0.5, colors.HexColor('#e0e0e0')),
            ('TOPPADDING', (0, 1), (-1, -1), 8),
            ('BOTTOMPADDING', (0, 1), (-1, -1), 8),
        ]))
        elements.append(items_table)
        elements.append(Spacer(1, 20))

        # Totals
        totals = invoice_totals(invoice, self.tax_rate)
        totals_data = [
            ['Subtotal:', self._money(totals["subtotal"])],
            [f'Tax ({self.tax_rate:g}%):', self._money(totals["tax"])],
            ['TOTAL:', self._money(totals["total"])],
        ]
        totals_table = Table(totals_data, colWidths=[5*inch, 2*inch])
        totals_table.setStyle(TableStyle([
            ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
            ('FONTNAME', (0, 0), (-1, -2), 'Helvetica'),
            ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
            ('FONTSIZE', (0, -1), (-1, -1), 14),
            ('TEXTCOLOR', (0, -1), (-1, -1), primary),
            ('LINEABOVE', (0, -1), (-1, -1), 2, primary),
            ('TOPPADDING', (0, 0), (-1, -1), 6),
        ]))
        elements.append(totals_table)

        if invoice.notes:
            elements.append(Spacer(1, 30))
            elements.append(Paragraph("NOTES", self.styles['SectionHeader']))
            elements.append(Paragraph(escape(invoice.notes), self.styles['Normal']))

        # Footer
        elements.append(Spacer(1, 30))
        footer_style = ParagraphStyle(
            name='Footer',
            parent=self.styles['Normal'],
            fontSize=8,
            textColor=colors.HexColor('#999999'),
            alignment=TA_CENTER
        )
        elements.append(Paragraph(f"Generated on {datetime.now().strftime('%B %d, %Y')}", footer_style))

        doc.build(elements)
        return buffer.getvalue()
