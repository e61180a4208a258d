from typing import Callable, List, Optional

from chipvm.config import TIMER_HZ
from chipvm.decoder import Operation
from chipvm.machine import Machine

StepCallback = Callable[[Operation], None]


class Clock:
    """
    Drives a machine one 60 Hz frame at a time: the CPU steps owed for the frame, then one timer tick.
    Steps are counted in whole units of 1/60th of a cycle so that rates which do not divide by 60 still average out exactly.
    """
    def __init__(self, machine: Machine, cpu_hz: Optional[int] = None):
        self.machine = machine
        self.cpu_hz = machine.config.cpu_hz if cpu_hz is None else cpu_hz
        if self.cpu_hz <= 0:
            raise ValueError(f"The CPU rate must be positive, got {self.cpu_hz}.")
        self.owed = 0
        self.frames = 0

    def run_frame(self, on_step: Optional[StepCallback] = None) -> List[Operation]:
        """
        Run one frame's worth of instructions followed by a timer tick.
        The timers still tick if an instruction raises part way through the frame.
        :param on_step: Called with each operation as soon as it has executed.
        :return: The operations executed during the frame.
        """
        self.owed += self.cpu_hz
        steps, self.owed = divmod(self.owed, TIMER_HZ)
        operations: List[Operation] = []
        try:
            for _ in range(steps):
                operation = self.machine.step()
                operations.append(operation)
                if on_step is not None:
                    on_step(operation)
        finally:
            self.machine.tick_timers()
            self.frames += 1
        return operations

    def run_frames(self, count: int, on_step: Optional[StepCallback] = None) -> List[Operation]:
        operations: List[Operation] = []
        for _ in range(count):
            operations.extend(self.run_frame(on_step))
        return operations
