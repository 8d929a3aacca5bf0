import logging
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional


log = logging.getLogger(__name__)


def smtp_settings() -> dict:
    user = os.getenv('SMTP_USER')
    return {
        'host': os.getenv('SMTP_HOST'),
        'port': int(os.getenv('SMTP_PORT', '587')),
        'user': user,
        'password': os.getenv('SMTP_PASS'),
        'sender': os.getenv('MAIL_FROM', user),
        'timeout': float(os.getenv('SMTP_TIMEOUT_SEC', '10')),
    }


def send_email(to_email: str, subject: str, text: str, html: Optional[str] = None) -> bool:
    """Send one message. Returns False when SMTP is not configured."""
    cfg = smtp_settings()
    if not (cfg['host'] and cfg['user'] and cfg['password'] and cfg['sender']):
        # Skip actual sending in dev if not configured
        log.info("SMTP not configured, not sending %r to %s", subject, to_email)
        return False

    msg = MIMEMultipart('alternative')
    msg['From'] = cfg['sender']
    msg['To'] = to_email
    msg['Subject'] = subject
    msg.attach(MIMEText(text, 'plain'))
    if html:
        msg.attach(MIMEText(html, 'html'))

    with smtplib.SMTP(cfg['host'], cfg['port'], timeout=cfg['timeout']) as server:
        server.starttls()
        server.login(cfg['user'], cfg['password'])
        server.sendmail(cfg['sender'], [to_email], msg.as_string())
    log.info("Sent %r to %s", subject, to_email)
    return True
