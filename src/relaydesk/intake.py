"""Form submissions: reports become forum posts, contact requests go to the operator."""

from __future__ import annotations

from dataclasses import dataclass

from .delivery import DeliveryResolver, explain_failure
from .discord.api_models import Channel
from .discord.client_api import DiscordApi, DiscordApiError
from .discord.components import (
    CONTACT_MESSAGE_FIELD,
    CONTACT_MODAL_ID,
    DETAILS_MAX_LENGTH,
    MESSAGE_MAX_LENGTH,
    REPORT_DETAILS_FIELD,
    REPORT_MODAL_ID,
    REPORT_TITLE_FIELD,
    TITLE_MAX_LENGTH,
)
from .errors import ValidationError
from .interactions import InteractionResponder
from .logging import get_logger
from .model import (
    Delivered,
    DeliveryOutcome,
    FormSubmission,
    RelayEnvelope,
    SubmissionKind,
)
from .resolver import EntityResolver

logger = get_logger(__name__)

SUBMISSION_KINDS: dict[str, SubmissionKind] = {
    REPORT_MODAL_ID: "report",
    CONTACT_MODAL_ID: "contact-operator",
}

THREAD_NAME_LIMIT = 100


@dataclass(frozen=True, slots=True)
class ReportRequest:
    title: str
    details: str


@dataclass(frozen=True, slots=True)
class ContactRequest:
    message: str


def _required_text(
    fields: dict[str, str], field: str, label: str, max_length: int
) -> str:
    value = (fields.get(field) or "").strip()
    if not value:
        raise ValidationError(field, f"{label} must not be empty.")
    if len(value) > max_length:
        raise ValidationError(
            field, f"{label} is too long ({len(value)}/{max_length} characters)."
        )
    return value


def validate_report(fields: dict[str, str]) -> ReportRequest:
    return ReportRequest(
        title=_required_text(fields, REPORT_TITLE_FIELD, "Short Title", TITLE_MAX_LENGTH),
        details=_required_text(
            fields, REPORT_DETAILS_FIELD, "Problem description", DETAILS_MAX_LENGTH
        ),
    )


def validate_contact(fields: dict[str, str]) -> ContactRequest:
    return ContactRequest(
        message=_required_text(
            fields, CONTACT_MESSAGE_FIELD, "Your message", MESSAGE_MAX_LENGTH
        )
    )


def report_thread_name(title: str, requester_display: str) -> str:
    return f"{title} — by {requester_display}"[:THREAD_NAME_LIMIT]


def outcome_message(outcome: DeliveryOutcome) -> str:
    if isinstance(outcome, Delivered):
        if outcome.via == "fallbackThread":
            return (
                "✅ Staff could not be reached by DM, so a private thread was opened "
                f"for you: <#{outcome.channel_id}>"
            )
        return (
            "✅ Message sent to staff.\n"
            "(Ask them to check **Inbox → Message Requests** if they do not see it.)"
        )
    return (
        f"⚠️ Your message could not be delivered: {explain_failure(outcome)}. "
        "Please contact an administrator."
    )


class RequestIntake:
    def __init__(
        self,
        api: DiscordApi,
        entities: EntityResolver,
        delivery: DeliveryResolver,
        *,
        forum_channel_id: str,
        operator_id: str,
    ) -> None:
        self._api = api
        self._entities = entities
        self._delivery = delivery
        self._forum_channel_id = forum_channel_id
        self._operator_id = operator_id

    async def submit(
        self, event: FormSubmission, responder: InteractionResponder
    ) -> None:
        kind = SUBMISSION_KINDS.get(event.custom_id)
        if kind is None:
            logger.info("intake.unknown_form", custom_id=event.custom_id)
            await responder.reply("❌ This form is no longer supported.")
            return
        if kind == "report":
            report = validate_report(event.fields)
            await responder.defer()
            thread = await self.file_report(event, report)
            await responder.reply(f"✅ Report posted: <#{thread.id}>")
            return
        contact = validate_contact(event.fields)
        await responder.defer()
        outcome = await self.contact_operator(event, contact)
        await responder.reply(outcome_message(outcome))

    async def file_report(self, event: FormSubmission, report: ReportRequest) -> Channel:
        forum = await self._entities.require_channel(
            self._forum_channel_id, "forum-category", setting="FORUM_CHANNEL_ID"
        )
        body = "\n".join(
            [
                f"**Reporter:** <@{event.user_id}> ({event.user_tag})",
                f"**Title:** {report.title}",
                "**Details:**",
                report.details,
            ]
        )
        thread = await self._api.start_forum_thread(
            forum.id,
            name=report_thread_name(report.title, event.user_display),
            content=body,
        )
        logger.info(
            "intake.report.created",
            requester_id=event.user_id,
            thread_id=thread.id,
        )
        return thread

    async def _space_name(self, space_id: str | None) -> str | None:
        if space_id is None:
            return None
        try:
            guild = await self._api.get_guild(space_id)
        except DiscordApiError as exc:
            logger.info("intake.guild_lookup.failed", space_id=space_id, code=exc.code)
            return None
        return guild.name or None

    async def contact_operator(
        self, event: FormSubmission, contact: ContactRequest
    ) -> DeliveryOutcome:
        envelope = RelayEnvelope(
            sender_display=event.user_tag or event.user_display,
            sender_id=event.user_id,
            origin_space_name=await self._space_name(event.space_id),
            body_text=contact.message,
        )
        outcome = await self._delivery.deliver(
            self._operator_id, envelope, origin_space_id=event.space_id
        )
        if not isinstance(outcome, Delivered):
            await self._delivery.post_failure_notice(outcome, envelope)
        return outcome
