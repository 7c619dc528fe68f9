"""
Batched property reader: splits a logical read into protocol sized chunks
and merges the responses back into a ReadResult tolerant of partial failures.
"""

from typing import TYPE_CHECKING

from . import (
    PROPERTY_ABSENT,
    NotReadyError,
    PropertyResult,
    ProtocolError,
    ReadResult,
    TransportError,
    const as mc,
    get_properties_params,
)

if TYPE_CHECKING:
    from typing import Any, Awaitable, Callable, Iterable

    from . import PropertyAddress

    type ReadRequest = Iterable[tuple[str, PropertyAddress]]
    type CallType = Callable[[str, Any], Awaitable[Any]]
    type LogType = Callable[..., None]


class PropertyReader:
    """
    call: the coroutine function used to issue the remote call (method, params).
    It is expected to enforce its own timeout and to raise TransportError
    (or NotReadyError) on link failures.
    A chunk failing at transport level is retried once (NotReadyError is never retried
    since it fails fast before reaching the device). Protocol level errors are legit
    responses and never retried. A chunk failing after the retry is recorded as
    all-absent without affecting its siblings.
    A chunk refused as a whole by the device (ProtocolError) is recorded as
    all-absent too but, being a legit answer, it is not accounted as failed.
    """

    __slots__ = (
        "_call",
        "_log",
        "chunk_size",
        "retries",
    )

    def __init__(
        self,
        call: "CallType",
        *,
        chunk_size: int = mc.CHUNK_SIZE_MAX,
        retries: int = 1,
        log: "LogType | None" = None,
    ):
        if not (0 < chunk_size <= mc.CHUNK_SIZE_MAX):
            raise ValueError(f"chunk_size must be in 1..{mc.CHUNK_SIZE_MAX}")
        self._call = call
        self._log = log
        self.chunk_size = chunk_size
        self.retries = retries

    async def async_read(self, request: "ReadRequest") -> ReadResult:
        # de-duplicate by name (first address wins) while preserving order
        addresses: "dict[str, PropertyAddress]" = {}
        for name, address in request:
            addresses.setdefault(name, address)
        items = list(addresses.items())

        result = ReadResult()
        chunk_size = self.chunk_size
        for index in range(0, len(items), chunk_size):
            chunk = items[index : index + chunk_size]
            result.chunks += 1
            response = await self._async_read_chunk(chunk)
            if response is None:
                result.failed_chunks += 1
                for name, _ in chunk:
                    result[name] = PROPERTY_ABSENT
            else:
                result.update(self._index_response(chunk, response))
        return result

    async def _async_read_chunk(self, chunk: "list[tuple[str, PropertyAddress]]"):
        params = get_properties_params(chunk)
        attempt = 0
        while True:
            try:
                response = await self._call(mc.METHOD_GET_PROPERTIES, params)
                if isinstance(response, list):
                    return response
                # a malformed response counts as a protocol answer with nothing usable
                self._warning("malformed get_properties response (%s)", response)
                return []
            except ProtocolError as error:
                self._warning("chunk refused by the device: %s", error)
                return []
            except NotReadyError as error:
                self._warning("chunk not read: %s", error)
                return None
            except TransportError as error:
                if attempt < self.retries:
                    attempt += 1
                    self._warning("chunk read failed (%s): retrying", error)
                    continue
                self._warning("chunk read failed (%s)", error)
                return None

    @staticmethod
    def _index_response(
        chunk: "list[tuple[str, PropertyAddress]]", response: list
    ) -> "dict[str, PropertyResult]":
        """
        Index the response entries by 'did' and fall back to the (siid, piid) pair
        since some firmwares don't echo the did. The first entry for a given key wins.
        Requested names without a matching entry are synthesized as absent.
        """
        by_did: "dict[Any, dict]" = {}
        by_address: "dict[tuple, dict]" = {}
        for item in response:
            if not isinstance(item, dict):
                continue
            if (did := item.get(mc.KEY_DID)) is not None:
                by_did.setdefault(did, item)
            by_address.setdefault((item.get(mc.KEY_SIID), item.get(mc.KEY_PIID)), item)

        indexed = {}
        for name, address in chunk:
            item = by_did.get(name) or by_address.get((address.siid, address.piid))
            if item is None:
                indexed[name] = PROPERTY_ABSENT
                continue
            code = item.get(mc.KEY_CODE)
            indexed[name] = PropertyResult(
                code if isinstance(code, int) else mc.CODE_ABSENT,
                item.get(mc.KEY_VALUE),
            )
        return indexed

    def _warning(self, msg: str, *args):
        if log := self._log:
            log(msg, *args)
