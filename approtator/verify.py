import logging
from dataclasses import dataclass, field
from typing import Sequence

from rich.markup import escape

from approtator.chain import STAKED_STATUS, ChainClient
from approtator.errors import QueryError
from approtator.keys import KeyManager
from approtator.log import console

logger = logging.getLogger(__name__)


@dataclass
class VerificationResult:
    verified: list = field(default_factory=list)
    unverified: list = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.unverified

    @property
    def total(self) -> int:
        return len(self.verified) + len(self.unverified)


def app_status(app: dict):
    status = app.get("status")
    if status is None and isinstance(app.get("application"), dict):
        status = app["application"].get("status")
    return status


def verify_stakes(chain: ChainClient, keys: Sequence[str], signer=KeyManager) -> VerificationResult:
    """
    Check that every key's app is staked on chain.
    Query failures mark a key unverified but never stop the pass.
    """
    result = VerificationResult()
    for index, key in enumerate(keys, 1):
        try:
            address = signer.from_private_key(key).address
        except ValueError:
            console.print(f"[red]Key {index} is not a valid app private key.[/red]")
            result.unverified.append(f"<invalid key {index}>")
            continue
        try:
            app = chain.get_app(address)
        except QueryError as e:
            logger.debug("Query for %s failed: %s", address, e)
            console.print(f"[red]App: {address} cannot be found.[/red] [dim]{escape(str(e))}[/dim]")
            result.unverified.append(address)
            continue

        status = app_status(app)
        if status != STAKED_STATUS:
            console.print(f"[red]App: {address} cannot be found, status {status}.[/red]")
            result.unverified.append(address)
        else:
            result.verified.append(address)
    return result
