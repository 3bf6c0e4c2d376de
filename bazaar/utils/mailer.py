import logging
import resend

from bazaar import config

logger = logging.getLogger(__name__)


def send_magic_link(to_email: str, link: str) -> bool:
    """
    Email a sign-in link. Returns False when mail delivery is not configured.
    """
    if not config.RESEND_API_KEY:
        logger.warning("Skipping email to %s: RESEND_API_KEY not set. Sign-in link: %s", to_email, link)
        return False

    resend.api_key = config.RESEND_API_KEY

    try:
        resend.Emails.send({
            "from": config.MAIL_FROM,
            "to": [to_email],
            "subject": "Your Campus Bazaar sign-in link",
            "html": (
                "<p>Tap the link below to sign in. It expires in "
                f"{config.MAGIC_LINK_EXPIRE_MINUTES} minutes.</p>"
                f'<p><a href="{link}">Sign in to Campus Bazaar</a></p>'
            ),
        })
    except Exception as e:
        logger.error("Failed to send sign-in email to %s: %s", to_email, e)
        raise

    logger.info("Sign-in link sent to %s", to_email)
    return True
