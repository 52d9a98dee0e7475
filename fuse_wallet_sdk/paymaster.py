"""
Verifying paymaster integration for gas-sponsored Fuse user operations
"""

import logging
from typing import Any, Dict, Optional

from fuse_wallet_sdk.config import DUMMY_SIGNATURE
from fuse_wallet_sdk.rpc import JsonRpcClient
from fuse_wallet_sdk.user_operations import (
    UserOperationMiddlewareContext,
    UserOperationMiddlewareFn,
    apply_gas_values,
)

logger = logging.getLogger(__name__)

# Headroom for the paymaster's own validation before it re-estimates
VERIFICATION_GAS_MULTIPLIER = 3


def verifying_paymaster(
    paymaster: JsonRpcClient,
    context: Optional[Dict[str, Any]] = None,
) -> UserOperationMiddlewareFn:
    """Middleware requesting sponsorship via ``pm_sponsorUserOperation``.

    Replaces bundler gas estimation: the paymaster returns gas limits together
    with ``paymasterAndData``.
    """
    context = dict(context or {})

    async def middleware(ctx: UserOperationMiddlewareContext) -> None:
        ctx.op.verification_gas_limit *= VERIFICATION_GAS_MULTIPLIER
        user_op_dict = ctx.op.to_rpc_dict()
        user_op_dict['signature'] = DUMMY_SIGNATURE

        logger.info(f"Requesting paymaster sponsorship for {ctx.op.sender}")
        sponsorship = await paymaster.request(
            "pm_sponsorUserOperation", [user_op_dict, ctx.entry_point, context]
        )

        if isinstance(sponsorship, str):
            apply_gas_values(ctx.op, {'paymasterAndData': sponsorship})
        else:
            apply_gas_values(ctx.op, sponsorship or {})

    return middleware
