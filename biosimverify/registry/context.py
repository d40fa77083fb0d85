from dataclasses import dataclass

from biosimverify.models.principal import Principal


@dataclass(frozen=True)
class CallContext:
    """
    Ambient context of one registry call: who is calling and at which block.
    """
    caller: Principal
    block_height: int = 0

    def __post_init__(self):
        if self.block_height < 0:
            raise ValueError(f"block_height must be non-negative, got {self.block_height}")

    def at_block(self, block_height: int) -> "CallContext":
        return CallContext(caller=self.caller, block_height=block_height)
