from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail
from flask import current_app

def send_email(to_email, subject, html):
    """Send through SendGrid. Returns (status_code, headers), or (None, None) when mail is not configured."""
    api_key = current_app.config.get('SENDGRID_API_KEY')
    if not api_key:
        current_app.logger.warning('SENDGRID_API_KEY not set; skipping email to %s (%s)', to_email, subject)
        return None, None
    sg = SendGridAPIClient(api_key=api_key)
    message = Mail(from_email=(current_app.config['MAIL_FROM'], current_app.config['MAIL_FROM_NAME']),
                   to_emails=to_email,
                   subject=subject,
                   html_content=html)
    resp = sg.send(message)
    return resp.status_code, getattr(resp, 'headers', None)
