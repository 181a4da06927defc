import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .decoder import ZERO_WORD, SlotKey
from .errors import StateLensError
from .rpc_client import ChainClient

logger = logging.getLogger(__name__)


class SlotBatcher:
    """
    Reads many storage slots in fixed-size concurrent groups.

    Every requested slot appears in the result. A slot whose read fails is
    reported as the zero word so one bad slot never hides the rest.
    """

    def __init__(
        self,
        chain: ChainClient,
        batch_size: int = 50,
        delay_seconds: float = 0.1,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be a positive integer.")
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be non-negative.")
        self.chain = chain
        self.batch_size = batch_size
        self.delay_seconds = delay_seconds

    async def _read_one(
        self,
        address: str,
        slot: SlotKey,
        block_number: Optional[int],
    ) -> Tuple[SlotKey, str]:
        try:
            word = await self.chain.read_word(address, slot, block_number)
        except StateLensError as exc:
            logger.warning("Error fetching slot %s of %s: %s", slot, address, exc)
            return slot, ZERO_WORD
        return slot, word

    async def read_words(
        self,
        address: str,
        slots: Sequence[SlotKey],
        block_number: Optional[int] = None,
    ) -> Dict[SlotKey, str]:
        results: Dict[SlotKey, str] = {}
        slot_list = list(slots)

        for start in range(0, len(slot_list), self.batch_size):
            group = slot_list[start:start + self.batch_size]
            words = await asyncio.gather(
                *(self._read_one(address, slot, block_number) for slot in group)
            )
            results.update(words)

            if start + self.batch_size < len(slot_list) and self.delay_seconds:
                await asyncio.sleep(self.delay_seconds)

        logger.debug("Fetched %d slots of %s", len(results), address)
        return results

    async def crawl(
        self,
        address: str,
        max_slots: int,
        block_number: Optional[int] = None,
    ) -> Dict[int, str]:
        """Read slots ``0..max_slots-1``."""
        if max_slots < 0:
            raise ValueError("max_slots must be non-negative.")
        slots: List[SlotKey] = list(range(max_slots))
        words = await self.read_words(address, slots, block_number)
        return {int(slot): word for slot, word in words.items()}
