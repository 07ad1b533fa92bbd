"""
Chain capability used by the batch orchestrator.

``ChainClient`` is the seam the orchestrator and verifier depend on. The
concrete ``PocketCliClient`` drives the ``pocket`` binary against a remote
JSON-RPC provider, one throwaway keybase per prepared action.
"""

import json
import logging
import shutil
import subprocess
import tempfile
from abc import ABC, abstractmethod
from typing import Optional

from approtator.config import Settings
from approtator.errors import ChainError, QueryError
from approtator.keys import KeyManager
from approtator.models import StakeAction

logger = logging.getLogger(__name__)

STAKED_STATUS = 2


class PreparedAction(ABC):
    """A signed, ready-to-submit action. Submitting may be repeated."""

    address: str
    new_address: Optional[str] = None

    @abstractmethod
    def submit(self) -> str:
        """Submit the message and return the transaction hash."""

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class ChainClient(ABC):
    @abstractmethod
    def prepare(self, action: StakeAction, key: str, new_key: Optional[str] = None) -> PreparedAction:
        """Resolve the signer for ``key`` and build the message for ``action``."""

    @abstractmethod
    def get_app(self, address: str) -> dict:
        """Return the on-chain app record, or raise QueryError."""


def parse_tx_response(output: str) -> str:
    """
    Extract the tx hash from pocket CLI output.
    The CLI prints a status line followed by the JSON response.
    """
    start = output.find("{")
    if start < 0:
        raise ChainError(f"No JSON response from pocket: {output.strip()[:200]}")
    try:
        data, _ = json.JSONDecoder().raw_decode(output[start:])
    except json.JSONDecodeError as e:
        raise ChainError(f"Invalid JSON response from pocket: {e}") from e

    if not isinstance(data, dict):
        raise ChainError("Unexpected response from pocket")
    code = data.get("code") or 0
    if code != 0:
        raise ChainError(f"Transaction rejected with code {code}: {data.get('raw_log', '')}")
    tx_hash = data.get("txhash")
    if not tx_hash:
        raise ChainError(f"Response has no txhash: {json.dumps(data)[:200]}")
    return tx_hash


class PocketCliAction(PreparedAction):
    def __init__(self, client: "PocketCliClient", action: StakeAction, signer: KeyManager,
                 new_signer: Optional[KeyManager], private_key: str):
        self.client = client
        self.action = action
        self.address = signer.address
        self.new_address = new_signer.address if new_signer else None
        self._new_public_key = new_signer.public_key if new_signer else None
        self._datadir = tempfile.mkdtemp(prefix="approtator-")
        try:
            self.client._run(
                ["accounts", "import-raw", private_key],
                datadir=self._datadir,
                secrets=[private_key],
            )
        except Exception:
            self.close()
            raise
        self._args = self._build_args()

    def _build_args(self) -> list[str]:
        s = self.client.settings
        fee = str(s.fee)
        if self.action is StakeAction.STAKE:
            return ["apps", "stake", self.address, s.stake_amount, ",".join(s.relay_chains), s.network_id, fee]
        if self.action is StakeAction.UNSTAKE:
            return ["apps", "unstake", self.address, s.network_id, fee]
        return ["apps", "transfer", self.address, self._new_public_key, s.network_id, fee]

    def submit(self) -> str:
        if self._datadir is None:
            raise ChainError("Action already closed")
        if self.action.is_transfer:
            logger.info("Attempting to transfer app %s to %s", self.address, self.new_address)
        else:
            logger.info("Attempting to %s app %s", self.action.value, self.address)
        result = self.client._run(self._args, datadir=self._datadir)
        return parse_tx_response(result.stdout)

    def close(self):
        if self._datadir is not None:
            shutil.rmtree(self._datadir, ignore_errors=True)
            self._datadir = None


class PocketCliClient(ChainClient):
    """
    Provider backed by the ``pocket`` CLI pointed at ``rpc_url``.
    Safe to share between threads; it holds no mutable state.
    """

    def __init__(self, settings: Settings, rpc_url: str):
        self.settings = settings
        self.rpc_url = rpc_url

    def _run(self, args: list[str], datadir: Optional[str] = None, secrets=()) -> subprocess.CompletedProcess:
        cmd = [self.settings.pocket_binary, *args, "--remoteCLIURL", self.rpc_url]
        if datadir:
            cmd.extend(["--datadir", datadir])
        stdin_input = f"{self.settings.keybase_passphrase}\n" if datadir else None

        def redact(text):
            for secret in secrets:
                text = text.replace(secret, "<redacted>")
            return text.strip()

        label = " ".join(args[:2])
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True,
                timeout=self.settings.command_timeout, input=stdin_input,
            )
        except subprocess.TimeoutExpired:
            raise ChainError(f"Timeout running pocket {label}") from None
        except FileNotFoundError:
            raise ChainError(f"{self.settings.pocket_binary} command not found") from None

        if result.returncode != 0:
            detail = redact(result.stderr or result.stdout)[:200]
            raise ChainError(f"pocket {label} failed: {detail}")
        return result

    def prepare(self, action: StakeAction, key: str, new_key: Optional[str] = None) -> PocketCliAction:
        if action.is_transfer and new_key is None:
            raise ValueError("transfer requires a destination key")
        signer = KeyManager.from_private_key(key)
        new_signer = KeyManager.from_private_key(new_key) if action.is_transfer else None
        return PocketCliAction(self, action, signer, new_signer, key)

    def get_app(self, address: str) -> dict:
        try:
            result = self._run(["query", "app", address])
        except ChainError as e:
            raise QueryError(f"App {address} cannot be found: {e}") from e

        start = result.stdout.find("{")
        try:
            data, _ = json.JSONDecoder().raw_decode(result.stdout[max(start, 0):])
        except json.JSONDecodeError as e:
            raise QueryError(f"Invalid JSON for app {address}: {e}") from e
        if not isinstance(data, dict):
            raise QueryError(f"Unexpected response for app {address}")
        return data
