"""Transport implementations for mail delivery.

Available transports:
    - SMTPTransport: Standard SMTP protocol via smtplib
    - SesTransport: AWS SES raw email (requires ``mailcraft[ses]``)
"""

from mailcraft.transports.ses import SesTransport
from mailcraft.transports.smtp import SMTPCredentials, SMTPSecurity, SMTPTransport

__all__ = [
    "SMTPCredentials",
    "SMTPSecurity",
    "SMTPTransport",
    "SesTransport",
]
