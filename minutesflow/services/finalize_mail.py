"""
Mails sent after a minutes has been finalized.

Two independent mail kinds:
- action items: one mail per responsible, listing that person's open items
- info items: one mail to all participants, listing every item of the minutes
"""
import logging
from typing import Callable, Dict, Iterable, List, Optional

from minutesflow.services.entities import MeetingSeries, Minutes

logger = logging.getLogger(__name__)

# Resolves user ids to their email address (None if unknown or without email)
EmailLookup = Callable[[Iterable[str]], Dict[str, Optional[str]]]


def _is_email_address(value: str) -> bool:
    return "@" in value and " " not in value.strip()


class FinalizeMailHandler:
    """
    Compose and send the mails of one finalized minutes.

    Args:
        minutes: The finalized minutes
        sender_address: From address of all mails
        mailer: Transport exposing ``send(sender, recipients, subject, body)``
        email_lookup: Maps user ids to email addresses
        meeting_series: Parent series, used for subjects
    """

    def __init__(
        self,
        minutes: Minutes,
        sender_address: str,
        mailer,
        email_lookup: EmailLookup,
        meeting_series: Optional[MeetingSeries] = None,
    ):
        self.minutes = minutes
        self.sender_address = sender_address
        self.mailer = mailer
        self.email_lookup = email_lookup
        self.meeting_series = meeting_series

    def send_mails(self, send_action_items: bool = True, send_info_items: bool = True) -> dict:
        """Send the requested mail kinds. Returns the number of mails per kind."""
        sent = {"action_items": 0, "info_items": 0}
        if send_action_items:
            sent["action_items"] = self._send_action_items()
        if send_info_items:
            sent["info_items"] = self._send_info_items()
        return sent

    @property
    def _series_label(self) -> str:
        if self.meeting_series is None:
            return "Meeting"
        if self.meeting_series.project:
            return f"{self.meeting_series.project} / {self.meeting_series.name}"
        return self.meeting_series.name

    def _resolve(self, responsibles: Iterable[str]) -> Dict[str, str]:
        """Map each responsible (user id or free-text address) to an email address."""
        responsibles = [str(r) for r in responsibles]
        user_ids = [r for r in responsibles if not _is_email_address(r)]
        looked_up = self.email_lookup(user_ids) if user_ids else {}

        resolved = {}
        for responsible in responsibles:
            if _is_email_address(responsible):
                resolved[responsible] = responsible
            elif looked_up.get(responsible):
                resolved[responsible] = looked_up[responsible]
            else:
                logger.warning(f"No email address for responsible {responsible}")
        return resolved

    def _send_action_items(self) -> int:
        items_by_address: Dict[str, List[dict]] = {}
        for item in self.minutes.get_open_action_items():
            for address in self._resolve(item.get("responsibles", [])).values():
                items_by_address.setdefault(address, []).append(item)

        subject = f"[{self._series_label}] Your action items from {self.minutes.date.isoformat()}"
        for address, items in items_by_address.items():
            body = self._format_action_items(items)
            self.mailer.send(self.sender_address, [address], subject, body)
        return len(items_by_address)

    def _send_info_items(self) -> int:
        addresses = sorted(set(self._resolve(self.minutes.get_participant_user_ids()).values()))
        if not addresses:
            logger.info(f"No participants with email for minutes {self.minutes.id}")
            return 0

        subject = f"[{self._series_label}] Minutes of {self.minutes.date.isoformat()}"
        body = self._format_minutes()
        self.mailer.send(self.sender_address, addresses, subject, body)
        return 1

    def _format_action_items(self, items: List[dict]) -> str:
        lines = [f"Open action items from the meeting on {self.minutes.date.isoformat()}:", ""]
        for item in items:
            line = f"- [{item.get('topicSubject', '')}] {item.get('subject', '')}"
            if item.get("duedate"):
                line += f" (due {item['duedate']})"
            lines.append(line)
            if item.get("details"):
                lines.append(f"    {item['details']}")
        return "\n".join(lines) + "\n"

    def _format_minutes(self) -> str:
        lines = [
            f"Minutes of {self._series_label}, {self.minutes.date.isoformat()}",
            f"Finalized by {self.minutes.finalized_by or '-'}",
            "",
        ]
        for topic in self.minutes.topics:
            state = "open" if topic.get("isOpen", True) else "closed"
            lines.append(f"* {topic.get('subject', '')} ({state})")
            for item in topic.get("infoItems", []):
                marker = "[AI]" if item.get("isActionItem") else "[i]"
                lines.append(f"    {marker} {item.get('subject', '')}")
        return "\n".join(lines) + "\n"
