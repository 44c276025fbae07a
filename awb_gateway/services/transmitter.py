"""
Transmission Service - Sends CARGO-IMP messages to the consolidator endpoint.

The FWB always goes first; houses follow one by one once the master has been
accepted. Failures never raise: every outcome is reported in a
TransmissionResult.
"""
import asyncio
import logging
from typing import Callable, List, Optional, Sequence, Tuple

import httpx
from lxml import etree

from awb_gateway.core.config import settings
from awb_gateway.schemas.transmission import (
    BundleTransmissionResult,
    ParsedAcknowledgement,
    SendState,
    TransmissionResult,
)

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/x-CARGO-IMP"

# Acknowledgement leaf elements and the field each one fills
_ACK_FIELDS = {
    "host": "host",
    "service": "service",
    "created": "created",
    "version": "version",
    "bytesReceived": "bytes_received",
    "status": "status",
    "tid": "tid",
    "error": "error",
    "errorShort": "error_short",
    "errorDetail": "error_detail",
    "unhandledException": "unhandled_exception",
    "retryAfter": "retry_after",
}
_INT_FIELDS = {"bytes_received", "retry_after"}

FhlItem = Tuple[str, Optional[str]]
# (message_type, reference, state)
StateListener = Callable[[str, str, SendState], None]


def parse_acknowledgement(text: str) -> ParsedAcknowledgement:
    """Reads the `<Response>` document returned by the endpoint; anything unparseable yields an empty ack."""
    if not text or not text.strip():
        return ParsedAcknowledgement()
    try:
        root = etree.fromstring(text.strip().encode("utf-8"))
    except etree.XMLSyntaxError as e:
        logger.debug(f"Acknowledgement is not XML: {e}")
        return ParsedAcknowledgement()

    values = {}
    for element in root.iter():
        if not isinstance(element.tag, str):
            continue
        field = _ACK_FIELDS.get(etree.QName(element).localname)
        if field is None or field in values or element.text is None:
            continue
        value = element.text.strip()
        if not value:
            continue
        if field in _INT_FIELDS:
            try:
                values[field] = int(value)
            except ValueError:
                continue
        else:
            values[field] = value
    return ParsedAcknowledgement(**values)


def is_success_response(ack: ParsedAcknowledgement) -> bool:
    if ack.has_error():
        return False
    return bool(ack.status or ack.tid)


def error_message(ack: ParsedAcknowledgement, response: httpx.Response) -> str:
    if ack.error:
        return ack.error
    if ack.error_short:
        return ack.error_short
    if ack.error_detail:
        return ack.error_detail
    if ack.unhandled_exception:
        return f"Exception: {ack.unhandled_exception}"
    if not response.is_success:
        return f"HTTP {response.status_code}: {response.reason_phrase}"
    return "Unknown error"


class CargoImpTransmitter:
    def __init__(
        self,
        endpoint: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        delay_ms: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_state: Optional[StateListener] = None,
    ):
        self.endpoint = endpoint if endpoint is not None else settings.TRANSMIT_ENDPOINT
        self.username = username if username is not None else settings.TRANSMIT_USERNAME
        self.password = password if password is not None else settings.TRANSMIT_PASSWORD
        self.delay_ms = delay_ms if delay_ms is not None else settings.TRANSMIT_DELAY_MS
        self.timeout = timeout if timeout is not None else settings.TRANSMIT_TIMEOUT
        self.transport = transport
        self.on_state = on_state

    def is_configured(self) -> bool:
        return bool(self.endpoint and self.username and self.password)

    @staticmethod
    def parse_acknowledgement(text: str) -> ParsedAcknowledgement:
        return parse_acknowledgement(text)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            auth=httpx.BasicAuth(self.username or "", self.password or ""),
            headers={"Content-Type": CONTENT_TYPE},
        )

    async def send_message(self, text: str, message_type: str, reference: str,
                           client: Optional[httpx.AsyncClient] = None) -> TransmissionResult:
        """POST one message. Pass `client` to reuse a connection across a bundle."""
        if not self.is_configured():
            logger.warning(f"{message_type} {reference} not sent: transmission endpoint not configured")
            self._set_state(message_type, reference, SendState.FAILED)
            return TransmissionResult(
                message_type=message_type,
                reference=reference,
                success=False,
                state=SendState.FAILED,
                error="Transmission service not configured: endpoint, username or password missing",
            )

        self._set_state(message_type, reference, SendState.SENDING)
        if client is None:
            async with self._client() as own_client:
                result = await self._post(own_client, text, message_type, reference)
        else:
            result = await self._post(client, text, message_type, reference)
        self._set_state(message_type, reference, result.state)
        return result

    def _set_state(self, message_type: str, reference: str, state: SendState) -> None:
        logger.debug(f"{message_type} {reference}: {state.value}")
        if self.on_state is not None:
            self.on_state(message_type, reference, state)

    async def _post(self, client: httpx.AsyncClient, text: str, message_type: str,
                    reference: str) -> TransmissionResult:
        logger.info(f"Sending {message_type} {reference} ({len(text)} bytes)")
        try:
            response = await client.post(self.endpoint, content=text.encode("utf-8"))
        except httpx.TimeoutException:
            logger.warning(f"{message_type} {reference} timed out")
            return TransmissionResult(
                message_type=message_type, reference=reference, success=False,
                state=SendState.FAILED, error="Request timed out",
            )
        except httpx.RequestError as e:
            logger.warning(f"{message_type} {reference} request failed: {e}")
            return TransmissionResult(
                message_type=message_type, reference=reference, success=False,
                state=SendState.FAILED, error=str(e) or "Connection error",
            )
        except Exception as e:
            logger.error(f"Unexpected error sending {message_type} {reference}: {e}")
            return TransmissionResult(
                message_type=message_type, reference=reference, success=False,
                state=SendState.FAILED, error=f"Unexpected error: {e}",
            )

        ack = parse_acknowledgement(response.text)
        if response.is_success and is_success_response(ack):
            logger.info(f"{message_type} {reference} accepted (tid={ack.tid})")
            return TransmissionResult(
                message_type=message_type,
                reference=reference,
                success=True,
                state=SendState.SENT,
                http_status=response.status_code,
                response_text=ack.status or "OK",
                parsed=ack,
            )

        error = error_message(ack, response)
        logger.warning(f"{message_type} {reference} rejected: {error}")
        return TransmissionResult(
            message_type=message_type,
            reference=reference,
            success=False,
            state=SendState.FAILED,
            http_status=response.status_code,
            response_text=response.text,
            parsed=ack,
            error=error,
        )

    async def send_bundle(self, fwb_text: str, fhl_messages: Sequence[FhlItem],
                          awb_number: str) -> BundleTransmissionResult:
        """
        Sends the master first, then every house in order.

        Houses are only attempted once the FWB is Sent. A failed house does not
        stop the ones after it.
        """
        fhl_results: List[TransmissionResult] = []

        async with self._client() as client:
            fwb_result = await self.send_message(fwb_text, "FWB", awb_number, client=client)

            if fwb_result.state == SendState.SENT:
                for i, (text, hawb) in enumerate(fhl_messages):
                    reference = hawb or f"HAWB-{i + 1}"
                    await asyncio.sleep(self.delay_ms / 1000)
                    result = await self.send_message(text, "FHL", reference, client=client)
                    fhl_results.append(result)
            elif fhl_messages:
                logger.warning(f"Skipping {len(fhl_messages)} FHL for {awb_number}: FWB was not accepted")

        results = [fwb_result] + fhl_results
        total_sent = len(results)
        total_success = sum(1 for r in results if r.success)
        total_failed = total_sent - total_success
        all_success = total_failed == 0

        if all_success:
            houses = f" + {len(fhl_results)} FHL" if fhl_results else ""
            summary = f"Transmission successful: FWB{houses} sent"
        elif total_success == 0:
            summary = "Transmission failed: no message could be sent"
        else:
            summary = f"Partial transmission: {total_success}/{total_sent} messages sent ({total_failed} failed)"

        logger.info(f"Bundle {awb_number}: {summary}")
        return BundleTransmissionResult(
            fwb_result=fwb_result,
            fhl_results=fhl_results,
            total_sent=total_sent,
            total_success=total_success,
            total_failed=total_failed,
            all_success=all_success,
            summary=summary,
        )
