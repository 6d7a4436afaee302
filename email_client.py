#!/usr/bin/env python3
"""
Email delivery for process update notifications
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import jinja2

from config import SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS, SMTP_TIMEOUT, EMAIL_FROM, FRONTEND_URL

logger = logging.getLogger(__name__)

PROCESS_UPDATE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{{ title }}</title>
<style>
.container { max-width: 600px; margin: 0 auto; font-family: Arial, sans-serif; }
.header { background-color: {{ color }}; color: white; padding: 20px; text-align: center; }
.content { padding: 30px; background-color: #f9f9f9; }
.update-box { background-color: #e9f7ef; border-left: 4px solid {{ color }}; padding: 15px; margin: 20px 0; }
.footer { text-align: center; color: #666; padding: 20px; }
</style>
</head>
<body>
<div class="container">
  <div class="header"><h1>{{ title }}</h1></div>
  <div class="content">
    <h2>{{ heading }}</h2>
    <p>Process Number: <strong>{{ process_number }}</strong></p>
    <div class="update-box">
      <h3>Details:</h3>
      <p>{{ details }}</p>
    </div>
    <p>Please <a href="{{ frontend_url }}">log in to your account</a> to view the complete details.</p>
  </div>
  <div class="footer"><p>{{ footer }}</p></div>
</div>
</body>
</html>
"""

template_env = jinja2.Environment(
    loader=jinja2.DictLoader({"process_update.html": PROCESS_UPDATE_TEMPLATE}),
    autoescape=True
)


def render_process_update(process_number: str, details: str) -> str:
    template = template_env.get_template("process_update.html")
    return template.render(
        title="Process Update Alert",
        heading="Your Process Has Been Updated",
        process_number=process_number,
        details=details,
        footer="You received this notification because you have enabled process update alerts.",
        color="#28a745",
        frontend_url=FRONTEND_URL
    )


def send_email(to_email: str, subject: str, html_content: str) -> None:
    """Send an HTML email over SMTP; raises on delivery failure"""
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = EMAIL_FROM
    msg["To"] = to_email
    msg.attach(MIMEText(html_content, "html", "utf-8"))

    if not (SMTP_USER and SMTP_PASS):
        # In development, just log the email
        logger.info(f"DEV MODE - Would send email to {to_email}: {subject}")
        return

    with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=SMTP_TIMEOUT) as server:
        server.starttls()
        server.login(SMTP_USER, SMTP_PASS)
        server.send_message(msg)
    logger.info(f"Email sent successfully to {to_email}")


def send_process_update(to_email: str, process_number: str, details: str) -> None:
    send_email(to_email, f"Process Update: {process_number}", render_process_update(process_number, details))
