"""
Email Service using Resend
Bodies are HTML templates rendered by TemplateRenderer
"""

import logging
from datetime import datetime
from typing import Optional, Union

import resend

from .config import ADMIN_NOTIFY_EMAIL, EMAIL_FROM_ADDRESS, FRONTEND_URL, RESEND_API_KEY
from .services.template_service import TemplateRenderer

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    html_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        html_content: Rendered HTML body
        from_address: Optional custom from address

    Returns:
        Send response dict
    """
    recipients = [to] if isinstance(to, str) else to
    sender = from_address or EMAIL_FROM_ADDRESS

    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise Exception("Email service not configured")

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(
            {
                "from": sender,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise Exception(f"Failed to send email: {str(e)}") from e


async def send_visit_confirmation(
    renderer: TemplateRenderer,
    to: str,
    user_name: str,
    visit_date: datetime,
    visit_time: Optional[str],
    address: str,
    services: list[str],
    description: Optional[str],
    status: str,
) -> dict:
    """Send the booking confirmation to whoever booked the visit"""
    html_content = renderer.render(
        "visit_confirmation",
        {
            "USER_NAME": user_name or "cliente",
            "VISIT_DATE": visit_date.strftime("%d/%m/%Y"),
            "VISIT_TIME": visit_time or visit_date.strftime("%H:%M"),
            "ADDRESS": address,
            "SERVICES": ", ".join(services) if services else "Sin servicios",
            "DESCRIPTION_BLOCK": description or "Sin descripción",
            "STATUS": status,
            "YEAR": datetime.utcnow().year,
        },
    )
    return await send_email(to=to, subject="Confirmación de visita agendada", html_content=html_content)


async def send_quotation_decision_notification(
    renderer: TemplateRenderer,
    customer_email: str,
    quotation_id: int,
    decision: str,
    total_estimate: float,
    order_id: Optional[int] = None,
) -> dict:
    """Tell the workshop that a customer accepted or rejected a quotation"""
    accepted = decision == "accepted"
    if accepted and order_id:
        order_line = f"Se creó la orden #{order_id}."
    elif accepted:
        order_line = "No se creó una orden nueva (ya existía una reciente)."
    else:
        order_line = "No se creó ninguna orden."

    html_content = renderer.render(
        "quotation_decision",
        {
            "CUSTOMER_EMAIL": customer_email,
            "DECISION": "ACEPTADO" if accepted else "RECHAZADO",
            "QUOTATION_ID": quotation_id,
            "TOTAL_ESTIMATE": f"{total_estimate:,.2f}",
            "ORDER_LINE": order_line,
            "LINK": f"{FRONTEND_URL.rstrip('/')}/admin/quotations",
            "YEAR": datetime.utcnow().year,
        },
    )
    return await send_email(
        to=ADMIN_NOTIFY_EMAIL or EMAIL_FROM_ADDRESS,
        subject=f"Cotización #{quotation_id} {'aceptada' if accepted else 'rechazada'}",
        html_content=html_content,
    )
