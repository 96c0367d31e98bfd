from .smtp_mailer import SMTPMailer

__all__ = ["SMTPMailer"]
