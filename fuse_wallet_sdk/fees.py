"""
Fee-per-gas state shared by the smart wallet and the retry logic
"""

import asyncio


def increase_fee_by_percentage(fee: int, percentage: int) -> int:
    """Return ``fee + floor(fee * percentage / 100)`` using integer arithmetic only"""
    if fee < 0 or percentage < 0:
        raise ValueError("fee and percentage must be non-negative")
    return fee + (fee * percentage) // 100


class FeeController:
    """Holds the max fee and priority fee applied to every user operation a wallet builds.

    The priority fee mirrors the max fee; there is no EIP-1559 base/tip split.
    """

    def __init__(self, fee: int = 0):
        self.max_fee_per_gas = fee
        self.max_priority_fee_per_gas = fee
        # set fees -> build -> send must not interleave across tasks on one wallet
        self.lock = asyncio.Lock()

    def set_fees(self, fee: int) -> None:
        if fee < 0:
            raise ValueError("fee must be non-negative")
        self.max_fee_per_gas = fee
        self.max_priority_fee_per_gas = fee

    def set_max_fee_per_gas(self, fee: int) -> None:
        self.max_fee_per_gas = fee

    def set_max_priority_fee_per_gas(self, fee: int) -> None:
        self.max_priority_fee_per_gas = fee

    def increase_by_percentage(self, percentage: int) -> int:
        """Raise both fees from the current max fee and return the new value"""
        fee = increase_fee_by_percentage(self.max_fee_per_gas, percentage)
        self.set_fees(fee)
        return fee
