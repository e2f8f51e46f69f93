"""Notification content for invitations.

Only the content is decided here. Delivery (SendGrid, Twilio, ...) belongs to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from config import CFG
from directory.models import BusinessDirectoryEntry, BusinessProposal, HostInvitation

CHANNEL_EMAIL = "email"
CHANNEL_SMS = "sms"


@dataclass(frozen=True)
class Notification:
    channel: str
    recipient: str
    body: str
    subject: str | None = None
    reply_to: str | None = None
    invitation_code: str | None = None

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "channel": self.channel,
            "recipient": self.recipient,
            "body": self.body,
        }
        if self.subject is not None:
            record["subject"] = self.subject
        if self.reply_to is not None:
            record["replyTo"] = self.reply_to
        if self.invitation_code is not None:
            record["invitationCode"] = self.invitation_code
        return record


def _signature() -> str:
    return f"{CFG.company_name}\nQuestions? Contact {CFG.support_email}"


def _signup_link(ref: str) -> str:
    return f"{CFG.signup_url}?ref={ref}"


def _city_of(location: str) -> str:
    # "Street, City, ST" -> "City"
    parts = [part.strip() for part in location.split(",")]
    return parts[1] if len(parts) > 1 and parts[1] else "our location"


def directory_invitation_email(
    entry: BusinessDirectoryEntry,
    proposal_id: str,
    *,
    host_name: str,
    event_title: str,
    event_date: str,
    event_location: str,
) -> Notification:
    body = (
        f"Hello {entry.owner_name},\n\n"
        f"{host_name} would like to invite {entry.business_name} to participate in their upcoming event:\n\n"
        f"{event_title}\n"
        f"Date: {event_date}\n"
        f"Location: {event_location}\n\n"
        f"{CFG.company_name} helps businesses like yours staff vendor events remotely with trained, "
        "professional contractors who represent your business at the event.\n\n"
        f"Join {CFG.company_name} & accept the invitation: {_signup_link(proposal_id)}\n\n"
        f"This invitation was sent by {host_name} through {CFG.company_name}.\n"
        f"{_signature()}"
    )
    return Notification(
        channel=CHANNEL_EMAIL,
        recipient=entry.email,
        subject=f"{CFG.company_name} Invitation: {event_title}",
        body=body,
    )


def directory_invitation_sms(
    entry: BusinessDirectoryEntry,
    proposal_id: str,
    *,
    host_name: str,
    event_title: str,
    event_date: str,
    event_location: str,
) -> Notification:
    del event_date, event_location  # Kept short for SMS.
    body = (
        f"{CFG.company_name} Invitation\n\n"
        f'Hi! {host_name} invited {entry.business_name} to participate in "{event_title}".\n\n'
        f"{CFG.company_name} helps businesses staff events remotely with qualified contractors.\n\n"
        f"Join now: {_signup_link(proposal_id)}\n\n"
        "Reply STOP to opt out."
    )
    return Notification(channel=CHANNEL_SMS, recipient=entry.phone, body=body)


def business_proposal_notifications(proposal: BusinessProposal) -> list[Notification]:
    """Business owner -> host: ask for a table at the host's event."""
    outbound: list[Notification] = []
    reply_to = proposal.business_owner_contact_email or CFG.support_email
    if proposal.host_email:
        lines = [
            "Greetings,",
            "",
            f"{proposal.business_name} located in {_city_of(proposal.event_location)} would like to vend "
            f"remotely at your {proposal.event_title} on {proposal.event_date}, with trained professionals "
            "who will staff our booth for us.",
            "",
            f"We want to pay ${proposal.proposed_amount} for a table or booth.",
        ]
        if proposal.contractors_needed:
            lines.append(f"Contractors needed: {proposal.contractors_needed}")
        lines += [
            "",
            f"Message from {proposal.business_owner_name}:",
            proposal.message,
            "",
            f"If you accept this proposal, use this invite code when you sign in to the {CFG.company_name} app:",
            "",
            f"INVITATION CODE: {proposal.invitation_code}",
            "",
            f"Download the app: {CFG.app_download_url}",
            f"For questions, please reply to: {reply_to}",
            "",
            "Best regards,",
            proposal.business_owner_name,
            proposal.business_name,
        ]
        outbound.append(
            Notification(
                channel=CHANNEL_EMAIL,
                recipient=proposal.host_email,
                subject=f"A {CFG.company_name} vendor wants to secure a table at {proposal.event_title}",
                body="\n".join(lines),
                reply_to=reply_to,
                invitation_code=proposal.invitation_code,
            )
        )
    if proposal.host_phone:
        outbound.append(
            Notification(
                channel=CHANNEL_SMS,
                recipient=proposal.host_phone,
                body=(
                    f"A {CFG.company_name} Business would like to request a table at your event "
                    f"{proposal.event_title} for {proposal.event_date}. Please check your email for more "
                    f"details or download the {CFG.company_name} App at {CFG.app_download_url} and use "
                    f"this invite code: {proposal.invitation_code}"
                ),
                invitation_code=proposal.invitation_code,
            )
        )
    return outbound


def host_invitation_notifications(proposal: HostInvitation) -> list[Notification]:
    """Host -> business: invite the business to vend remotely at the host's event."""
    outbound: list[Notification] = []
    reply_to = proposal.host_email or CFG.support_email
    if proposal.business_email:
        body = "\n".join(
            [
                "Hello,",
                "",
                f"My name is {proposal.host_name}, and I am hosting {proposal.event_title} on "
                f"{proposal.event_date} in {proposal.event_location}.",
                "",
                "I would like to invite you to set up a remote vendor table at my event. "
                f"With {CFG.company_name}, distance is no issue!",
                "",
                f"Table fee: ${proposal.proposed_amount}",
                f"Management fee: ${proposal.management_fee}",
                "",
                "Personal Message:",
                proposal.message,
                "",
                "To accept this invitation and connect with me directly:",
                f"1. Download the {CFG.company_name} App: {CFG.app_download_url}",
                f"2. Use this invitation code when registering: {proposal.invitation_code}",
                "",
                "Best regards,",
                proposal.host_name,
                "Event Host",
                "",
                _signature(),
            ]
        )
        outbound.append(
            Notification(
                channel=CHANNEL_EMAIL,
                recipient=proposal.business_email,
                subject=(
                    f"{CFG.company_name} Host Invitation: Remote Vendor Opportunity at {proposal.event_title}"
                ),
                body=body,
                reply_to=reply_to,
                invitation_code=proposal.invitation_code,
            )
        )
    if proposal.business_phone:
        outbound.append(
            Notification(
                channel=CHANNEL_SMS,
                recipient=proposal.business_phone,
                body=(
                    f"A {CFG.company_name} Host would like to invite you to set up a remote vendor table at "
                    f"{proposal.event_title} on {proposal.event_date}. Download the app at "
                    f"{CFG.app_download_url} and use invitation code {proposal.invitation_code} "
                    "to connect directly."
                ),
                invitation_code=proposal.invitation_code,
            )
        )
    return outbound
