# schoolconnect/services/notifications/dispatcher.py
"""Fan a resolved audience out over live, push and persisted delivery."""
from typing import Iterable, Optional
from uuid import UUID, uuid4
import asyncio
import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.config import settings
from ...core.exceptions import ErrorCode, TransportFailure
from ...models.notification import NotificationRecord
from ...schemas.notification_schemas import DispatchResult, NotificationPayload, RecipientContext
from ..device_token_service import DeviceTokenService
from ..realtime.connection_registry import ConnectionRegistry
from .push_transport import INVALID_TOKEN, TIMEOUT, TRANSPORT_ERROR, PushResult, PushTransport

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Delivers one payload to each recipient independently.

    Live and push delivery are best effort. The persisted record is the source
    of truth: a recipient counts as sent exactly when its record was stored.
    """

    def __init__(
        self,
        db: AsyncSession,
        registry: ConnectionRegistry,
        push_transport: PushTransport,
        push_timeout: Optional[float] = None,
    ):
        self.db = db
        self.registry = registry
        self.push_transport = push_transport
        self.push_timeout = push_timeout if push_timeout is not None else settings.push_timeout_seconds
        self.device_tokens = DeviceTokenService(db)

    async def dispatch(self, recipients: Iterable[RecipientContext], payload: NotificationPayload) -> DispatchResult:
        result = DispatchResult()
        for context in recipients:
            try:
                await self._deliver(context, payload, result)
            except Exception as e:
                logger.error(f"Delivery to user {context.user_id} aborted: {e}")
                await self._rollback()
                result.record_failure(context.user_id, f"unexpected_error: {e}")

        logger.info(
            f"Dispatched {payload.notification_type.value} '{payload.title}': "
            f"{result.sent} sent, {result.failed} failed"
        )
        return result

    async def _deliver(self, context: RecipientContext, payload: NotificationPayload, result: DispatchResult):
        # Live and push messages carry the id of the record persisted below
        record_id = uuid4()
        message = payload.for_recipient(context, notification_id=record_id)

        await self._send_live(context, message)
        await self._send_push(context, message)

        reason = await self._persist(record_id, context, payload)
        if reason is None:
            result.record_sent()
        else:
            result.record_failure(context.user_id, reason)

    async def _send_live(self, context: RecipientContext, message: dict):
        try:
            delivered = await self.registry.send_if_connected(context.user_id, {"type": "notification", "data": message})
        except Exception as e:
            logger.warning(f"{ErrorCode.TRANSPORT_FAILURE.value}: live delivery to {context.user_id} failed: {e}")
            return
        if delivered:
            logger.debug(f"Live notification sent to user {context.user_id}")

    async def _send_push(self, context: RecipientContext, message: dict):
        if not self.push_transport.enabled:
            return
        try:
            tokens = await self.device_tokens.get_active_tokens(context.user_id)
        except Exception as e:
            logger.warning(f"Could not load device tokens for {context.user_id}: {e}")
            await self._rollback()
            return

        for token in tokens:
            push_result = await self._push_one(token.device_token, token.platform, message)
            if push_result.success:
                continue
            if push_result.error_class == INVALID_TOKEN:
                logger.info(f"Deactivating invalid device token {token.id} of user {context.user_id}")
                try:
                    await self.device_tokens.deactivate(token.id)
                except SQLAlchemyError as e:
                    logger.warning(f"Could not deactivate device token {token.id}: {e}")
                    await self._rollback()
            else:
                logger.warning(
                    f"{ErrorCode.TRANSPORT_FAILURE.value}: push to user {context.user_id} "
                    f"failed ({push_result.error_class}): {push_result.detail}"
                )

    async def _push_one(self, device_token: str, platform, message: dict) -> PushResult:
        try:
            return await asyncio.wait_for(
                self.push_transport.send_push(device_token, platform, message),
                timeout=self.push_timeout,
            )
        except asyncio.TimeoutError:
            return PushResult(success=False, error_class=TIMEOUT, detail=f"no response within {self.push_timeout}s")
        except TransportFailure as e:
            return PushResult(success=False, error_class=e.error_class, detail=e.message)
        except Exception as e:
            return PushResult(success=False, error_class=TRANSPORT_ERROR, detail=str(e))

    async def _persist(self, record_id: UUID, context: RecipientContext, payload: NotificationPayload) -> Optional[str]:
        record = NotificationRecord(
            id=record_id,
            user_id=context.user_id,
            student_id=context.student_id,
            notification_type=payload.notification_type,
            priority=payload.priority,
            title=payload.title,
            body=payload.body,
            data={**payload.data, "reason": context.reason.value},
            related_id=payload.related_id,
        )
        try:
            self.db.add(record)
            await self.db.commit()
            return None
        except SQLAlchemyError as e:
            logger.error(f"Failed to persist notification for user {context.user_id}: {e}")
            await self._rollback()
            return f"persistence_failed: {e.__class__.__name__}"

    async def _rollback(self):
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            logger.error(f"Rollback failed: {e}")
