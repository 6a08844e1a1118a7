import asyncio
import json
from typing import List

from solana_launch_bot.config.settings import RPCConfig, ScannerConfig
from solana_launch_bot.ingestion.log_stream import LogStream, build_subscription, parse_notification
from solana_launch_bot.utils.constants import PUMP_PROGRAM_ID

MARKER = "Instruction: Create"


def _notification(signature="sig1", logs=None, err=None):
    return {
        "jsonrpc": "2.0",
        "method": "logsNotification",
        "params": {
            "result": {
                "context": {"slot": 1},
                "value": {
                    "signature": signature,
                    "err": err,
                    "logs": logs if logs is not None else ["Program log: Instruction: Create"],
                },
            },
            "subscription": 7,
        },
    }


def test_parse_notification_accepts_create_logs():
    assert parse_notification(_notification(), MARKER) == "sig1"


def test_parse_notification_rejects_failures_and_other_instructions():
    assert parse_notification(_notification(err={"InstructionError": [0, "Custom"]}), MARKER) is None
    assert parse_notification(_notification(logs=["Program log: Instruction: Buy"]), MARKER) is None
    assert parse_notification({"jsonrpc": "2.0", "result": 7, "id": 1}, MARKER) is None


def test_build_subscription_mentions_program():
    payload = json.loads(build_subscription(PUMP_PROGRAM_ID, "confirmed"))

    assert payload["method"] == "logsSubscribe"
    assert payload["params"] == [{"mentions": [PUMP_PROGRAM_ID]}, {"commitment": "confirmed"}]


class FakeSocket:
    def __init__(self, messages: List[str]) -> None:
        self.messages = list(messages)
        self.sent: List[str] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def send(self, message: str) -> None:
        self.sent.append(message)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self.messages:
            raise StopAsyncIteration
        return self.messages.pop(0)


def test_stream_forwards_signatures_and_reconnects():
    signatures: List[str] = []
    connection_changes: List[bool] = []
    delays: List[float] = []
    sockets = [
        FakeSocket([json.dumps({"jsonrpc": "2.0", "result": 3, "id": 1}), json.dumps(_notification("a")), "not json"]),
        FakeSocket([json.dumps(_notification("b"))]),
    ]

    def connect(url, **kwargs):
        if not sockets:
            raise OSError("refused")
        return sockets.pop(0)

    stream: LogStream

    async def sleep(delay: float) -> None:
        delays.append(delay)
        if len(delays) >= 4:
            stream.stop()

    stream = LogStream(
        signatures.append,
        rpc_config=RPCConfig(),
        scanner_config=ScannerConfig(),
        on_connection_change=connection_changes.append,
        connect=connect,
        sleep=sleep,
    )
    asyncio.run(stream.run())

    assert signatures == ["a", "b"]
    assert connection_changes[:4] == [True, False, True, False]
    # Clean closes reconnect at the base delay; consecutive failures double it.
    assert delays == [3.0, 3.0, 3.0, 6.0]
