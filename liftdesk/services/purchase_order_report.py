import io
import logging
from datetime import datetime, date
from typing import Dict, Any, List, Optional
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle, HRFlowable
from reportlab.lib.enums import TA_RIGHT
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.mime.application import MIMEApplication
import smtplib
import html
from xml.sax.saxutils import escape

from liftdesk.config import settings

logger = logging.getLogger(__name__)


class PurchaseOrderReportService:
    """Service for generating purchase order PDFs and emailing them to suppliers"""

    def __init__(self):
        self.smtp_server = settings.smtp_server
        self.smtp_port = settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.support_email = settings.company_support_email
        self.company_name = settings.company_display_name

    def generate_pdf(self, purchase_order: Dict[str, Any]) -> bytes:
        """Generate a printable purchase order"""
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=0.5*inch,
            leftMargin=0.5*inch,
            topMargin=0.5*inch,
            bottomMargin=0.5*inch,
            title=purchase_order.get('po_number', 'Purchase Order')
        )

        elements = []

        # Colors
        primary = colors.HexColor('#1a56db')
        dark = colors.HexColor('#1e293b')
        gray = colors.HexColor('#64748b')
        light_gray = colors.HexColor('#f1f5f9')
        border = colors.HexColor('#e2e8f0')

        # Styles
        title_style = ParagraphStyle('Title', fontSize=16, fontName='Helvetica-Bold', textColor=dark)
        subtitle_style = ParagraphStyle('Subtitle', fontSize=9, textColor=gray)
        section_style = ParagraphStyle('Section', fontSize=9, fontName='Helvetica-Bold', textColor=primary, spaceBefore=8, spaceAfter=4)
        label_style = ParagraphStyle('Label', fontSize=8, textColor=gray)
        value_style = ParagraphStyle('Value', fontSize=9, textColor=dark)
        cell_style = ParagraphStyle('Cell', fontSize=8, textColor=dark, leading=10)

        po_number = purchase_order.get('po_number', 'N/A')
        status = (purchase_order.get('status') or 'N/A').replace('_', ' ').title()
        supplier = purchase_order.get('supplier', {})
        currency = supplier.get('currency') or 'ILS'

        # === HEADER ===
        header_data = [[
            Paragraph(f"<b>{escape(self.company_name)}</b>", ParagraphStyle('Company', fontSize=12, fontName='Helvetica-Bold', textColor=primary)),
            Paragraph(f"<b>{escape(po_number)}</b>", ParagraphStyle('PO', fontSize=11, fontName='Helvetica-Bold', textColor=dark, alignment=TA_RIGHT))
        ]]
        header_table = Table(header_data, colWidths=[4.5*inch, 2.8*inch])
        header_table.setStyle(TableStyle([
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 2),
        ]))
        elements.append(header_table)

        elements.append(Paragraph("Purchase Order", title_style))
        elements.append(Spacer(1, 2))
        elements.append(Paragraph(f"Status: {status}", subtitle_style))
        elements.append(Spacer(1, 6))
        elements.append(HRFlowable(width="100%", thickness=1, color=border))
        elements.append(Spacer(1, 6))

        # === SUPPLIER & DATES ===
        address = supplier.get('billing_address') or {}
        address_line = ', '.join(filter(None, [address.get('street'), address.get('city'), address.get('zip'), address.get('country')])) or '-'

        info_data = [
            [Paragraph("<b>Supplier</b>", label_style), Paragraph("<b>Order Date</b>", label_style)],
            [Paragraph(self._text(supplier.get('company_name')), value_style), Paragraph(self._format_date(purchase_order.get('order_date')), value_style)],
            [Paragraph("<b>Contact</b>", label_style), Paragraph("<b>Expected Delivery</b>", label_style)],
            [Paragraph(self._text(purchase_order.get('contact_person')), value_style), Paragraph(self._format_date(purchase_order.get('expected_delivery_date')), value_style)],
            [Paragraph("<b>Address</b>", label_style), Paragraph("<b>Shipping</b>", label_style)],
            [Paragraph(escape(address_line), value_style), Paragraph(escape((purchase_order.get('shipping_method') or '-').replace('_', ' ').title()), value_style)],
        ]
        if purchase_order.get('project_name'):
            info_data.append([Paragraph("<b>Project</b>", label_style), Paragraph("", label_style)])
            info_data.append([Paragraph(escape(purchase_order['project_name']), value_style), Paragraph("", value_style)])

        info_table = Table(info_data, colWidths=[3.65*inch, 3.65*inch])
        info_table.setStyle(TableStyle([
            ('TOPPADDING', (0, 0), (-1, -1), 2),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 2),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ]))
        elements.append(info_table)

        # === ITEMS ===
        items = purchase_order.get('items', [])
        elements.append(Spacer(1, 8))
        elements.append(Paragraph(f"ITEMS  <font color='#64748b'>({len(items)})</font>", section_style))

        item_data = [['#', 'Part Number', 'Description', 'Qty', 'Unit Price', 'Total']]
        for index, item in enumerate(items, start=1):
            item_data.append([
                str(index),
                item.get('part_number') or '-',
                Paragraph(self._text(item.get('part_name')), cell_style),
                str(item.get('quantity_ordered', 0)),
                self._format_money(item.get('unit_price'), currency),
                self._format_money(item.get('total_price'), currency)
            ])
        item_data.append(['', '', '', '', 'Total', self._format_money(purchase_order.get('total_amount'), currency)])

        item_table = Table(item_data, colWidths=[0.3*inch, 1.3*inch, 2.9*inch, 0.6*inch, 1.0*inch, 1.2*inch])
        item_table.setStyle(TableStyle([
            # Header
            ('BACKGROUND', (0, 0), (-1, 0), light_gray),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 8),
            ('TEXTCOLOR', (0, 0), (-1, 0), gray),
            ('TEXTCOLOR', (0, 1), (-1, -1), dark),
            # Total row
            ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
            ('LINEABOVE', (0, -1), (-1, -1), 1, dark),
            # Alignment
            ('ALIGN', (3, 0), (-1, -1), 'RIGHT'),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('LINEBELOW', (0, 0), (-1, -2), 0.5, border),
            ('TOPPADDING', (0, 0), (-1, -1), 3),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
        ]))
        elements.append(item_table)

        if purchase_order.get('notes'):
            elements.append(Spacer(1, 8))
            elements.append(Paragraph("<b>Notes</b>", label_style))
            elements.append(Paragraph(escape(purchase_order['notes']), value_style))

        # === FOOTER ===
        elements.append(Spacer(1, 16))
        elements.append(HRFlowable(width="100%", thickness=0.5, color=border))
        elements.append(Spacer(1, 4))
        elements.append(Paragraph(
            f"Generated {datetime.now().strftime('%d/%m/%Y %H:%M')}  •  {escape(self.support_email)}",
            ParagraphStyle('Footer', fontSize=7, textColor=gray)
        ))

        doc.build(elements)
        pdf = buffer.getvalue()
        buffer.close()
        return pdf

    def _format_date(self, value: Optional[Any]) -> str:
        if not value:
            return '-'
        if isinstance(value, (date, datetime)):
            return value.strftime('%d/%m/%Y')
        try:
            return datetime.fromisoformat(str(value)).strftime('%d/%m/%Y')
        except ValueError:
            return str(value)

    def _text(self, value: Optional[str]) -> str:
        """Paragraph text is reportlab markup, so data goes in escaped"""
        return escape(value) if value else '-'

    def _format_money(self, value: Optional[float], currency: str) -> str:
        return f"{float(value or 0):,.2f} {currency}"

    def send_purchase_order_email(
        self,
        recipient_email: str,
        subject: str,
        purchase_order: Dict[str, Any],
        pdf_data: bytes,
        message: Optional[str] = None,
        cc_emails: Optional[List[str]] = None
    ) -> bool:
        """Send the purchase order to the supplier with the PDF attached"""
        po_number = purchase_order.get('po_number', 'N/A')
        cc_emails = cc_emails or []
        try:
            msg = MIMEMultipart('mixed')
            msg['Subject'] = subject
            msg['From'] = self.support_email
            msg['To'] = recipient_email
            if cc_emails:
                msg['Cc'] = ', '.join(cc_emails)

            custom_message = ""
            if message:
                custom_message = f"<p>{html.escape(message)}</p><hr style='border:none;border-top:1px solid #e2e8f0;margin:16px 0'>"

            supplier_name = html.escape(purchase_order.get('supplier', {}).get('company_name') or '')
            html_content = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <style>
        body {{ font-family: Arial, sans-serif; margin: 0; padding: 20px; background: #f8fafc; }}
        .container {{ max-width: 500px; margin: 0 auto; background: white; border-radius: 8px; overflow: hidden; }}
        .header {{ background: #1a56db; color: white; padding: 20px; }}
        .header h1 {{ margin: 0; font-size: 18px; }}
        .content {{ padding: 20px; font-size: 13px; color: #1e293b; }}
        .footer {{ background: #f8fafc; padding: 16px; text-align: center; font-size: 11px; color: #64748b; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>Purchase Order {po_number}</h1>
        </div>
        <div class="content">
            <p>Hello {supplier_name},</p>
            {custom_message}
            <p>Please find our purchase order attached as a PDF.</p>
        </div>
        <div class="footer">
            {self.company_name} • {self.support_email}
        </div>
    </div>
</body>
</html>
"""
            msg.attach(MIMEText(html_content, 'html'))

            filename = f"{po_number}.pdf"
            pdf_attachment = MIMEApplication(pdf_data, _subtype='pdf', Name=filename)
            pdf_attachment.add_header('Content-Disposition', f'attachment; filename="{filename}"')
            msg.attach(pdf_attachment)

            return self._send_email(msg, [recipient_email] + cc_emails)

        except Exception as e:
            logger.error(f"Error building purchase order email for {po_number}: {str(e)}")
            return False

    def _send_email(self, msg: MIMEMultipart, recipients: List[str]) -> bool:
        """Send email using SMTP"""
        try:
            if not self.username or not self.password:
                logger.warning("Email configuration incomplete: missing SMTP username or password")
                return False

            server = smtplib.SMTP(self.smtp_server, self.smtp_port)
            server.starttls()
            server.login(self.username, self.password)
            server.sendmail(self.support_email, recipients, msg.as_string())
            server.quit()

            logger.info(f"Email sent successfully to {', '.join(recipients)}")
            return True

        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed: {str(e)}")
            return False

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {', '.join(recipients)}: {str(e)}")
            return False
