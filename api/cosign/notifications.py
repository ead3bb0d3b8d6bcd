import logging
from .config import SIGNING_BASE_URL

logger = logging.getLogger(__name__)

# Delivery belongs to the notification service; this module only builds the
# message and logs it so operators can pick up links in development.

def signing_link(token: str) -> str:
    return f"{SIGNING_BASE_URL.rstrip('/')}/{token}"

def _deliver(to: str, subject: str, body: str):
    logger.info("notification to=%s subject=%r\n%s", to, subject, body)

def send_signing_request(signer, token: str, document, envelope):
    title = document.title or "Document"
    subject = f"Signature Requested: {title}"
    body = f"""You were asked to review and sign a document.
Document: “{title}”
Expires: {envelope.expires_at:%Y-%m-%d %H:%M} UTC

Open document: {signing_link(token)}
"""
    _deliver(signer.email, subject, body)

def send_reminder(signer, document, envelope):
    title = document.title or "Document"
    subject = f"Reminder: {title} is waiting for your signature"
    body = f"""{signer.name}, “{title}” is still waiting for your signature.
Use the link from the original invitation before {envelope.expires_at:%Y-%m-%d %H:%M} UTC.
"""
    _deliver(signer.email, subject, body)
