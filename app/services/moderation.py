"""Content classifiers consulted by the moderation gate.

Every classifier returns a ``ModerationVerdict``. Infrastructure problems are
reported through ``verdict.error`` instead of being raised, so the gate can
tell an outage apart from an explicit rejection.
"""
import logging
import re

from app.config import Settings, settings as default_settings
from app.schemas.photo import ModerationVerdict
from app.services.remote_functions import RemoteFunctions
from app.utils.exceptions import RemoteFunctionError

logger = logging.getLogger(__name__)

EXPLICIT_CONTENT = "explicit_content"
NEEDS_REVIEW = "needs_review"
REJECTION_REASONS = frozenset({EXPLICIT_CONTENT, NEEDS_REVIEW})

# OpenAI moderation categories that count as explicit rather than merely suggestive
EXPLICIT_CATEGORIES = frozenset({"sexual", "sexual/minors"})


def _mask_secrets(message: str) -> str:
    return re.sub(r"sk-[A-Za-z0-9_-]+", "sk-***", message)


class ModerationClassifier:
    name = "base"

    async def classify(
        self,
        photo_url: str,
        photo_id: str,
        profile_id: str,
        access_token: str | None = None,
    ) -> ModerationVerdict:
        raise NotImplementedError


class RpcModerationClassifier(ModerationClassifier):
    """Calls the backend's ``moderate-photo`` procedure."""

    name = "rpc"
    function_name = "moderate-photo"

    def __init__(self, functions: RemoteFunctions):
        self.functions = functions

    async def classify(self, photo_url, photo_id, profile_id, access_token=None) -> ModerationVerdict:
        try:
            payload = await self.functions.invoke(
                self.function_name,
                {"photo_url": photo_url, "photo_id": photo_id, "profile_id": profile_id},
                access_token=access_token,
            )
        except RemoteFunctionError as e:
            return ModerationVerdict(approved=False, error=e.message)

        return ModerationVerdict(
            approved=bool(payload.get("approved", False)),
            reason=payload.get("reason"),
            labels=[str(label) for label in payload.get("labels") or []],
        )


class OpenAIModerationClassifier(ModerationClassifier):
    """Classifies the image with the OpenAI moderation endpoint."""

    name = "openai"

    def __init__(self, config: Settings | None = None):
        self.config = config or default_settings

    async def classify(self, photo_url, photo_id, profile_id, access_token=None) -> ModerationVerdict:
        if not self.config.openai_api_key:
            logger.error("OPENAI_API_KEY not configured, cannot moderate photo %s", photo_id)
            return ModerationVerdict(approved=False, error="OPENAI_API_KEY not configured")

        try:
            from openai import AsyncOpenAI

            client = AsyncOpenAI(api_key=self.config.openai_api_key)
            response = await client.moderations.create(
                model=self.config.openai_moderation_model,
                input=[{"type": "image_url", "image_url": {"url": photo_url}}],
            )
        except Exception as e:
            logger.exception("OpenAI moderation FAILED for photo %s", photo_id)
            return ModerationVerdict(approved=False, error=_mask_secrets(str(e)))

        result = response.results[0]
        categories = result.categories.model_dump(by_alias=True)
        scores = result.category_scores.model_dump(by_alias=True)
        flagged = sorted(name for name, hit in categories.items() if hit)
        labels = [f"{name} ({round((scores.get(name) or 0) * 100)}%)" for name in flagged]
        logger.info("OpenAI moderation for photo %s: flagged=%s labels=%s", photo_id, result.flagged, labels)

        if not result.flagged:
            return ModerationVerdict(approved=True, labels=labels)
        if EXPLICIT_CATEGORIES.intersection(flagged):
            return ModerationVerdict(approved=False, reason=EXPLICIT_CONTENT, labels=labels)
        return ModerationVerdict(approved=False, reason=NEEDS_REVIEW, labels=labels)


class DisabledModerationClassifier(ModerationClassifier):
    """Leaves every photo pending for manual review."""

    name = "disabled"

    async def classify(self, photo_url, photo_id, profile_id, access_token=None) -> ModerationVerdict:
        return ModerationVerdict(approved=False, error="Automatic moderation disabled")


def build_classifier(config: Settings | None = None) -> ModerationClassifier:
    config = config or default_settings
    if config.moderation_backend == "openai":
        return OpenAIModerationClassifier(config)
    if config.moderation_backend == "disabled":
        return DisabledModerationClassifier()
    return RpcModerationClassifier(RemoteFunctions(config))
