import pytest

from lmc.assembler import assemble
from lmc.emulator import Emulator
from lmc.policy import ExecutionPolicy
from lmc.ports import CollectedOutput, QueuedInput


@pytest.fixture
def lenient_policy() -> ExecutionPolicy:
    return ExecutionPolicy(**{name: False for name in ExecutionPolicy.switch_names()})


@pytest.fixture
def make_emulator():
    """Build an emulator around assembled source with queued input and collected output."""

    def _make(source: str, inputs=(), policy=None):
        inbox = QueuedInput(inputs)
        outbox = CollectedOutput()
        emulator = Emulator(
            assemble(source).unwrap(),
            policy=policy,
            input_port=inbox,
            output_port=outbox,
        )
        return emulator, inbox, outbox

    return _make
