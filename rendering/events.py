from dataclasses import dataclass


@dataclass(frozen=True)
class ProgressEvent:
    done: int           # pixels written so far
    total: int          # width * height

    @property
    def fraction(self) -> float:
        return self.done / self.total if self.total else 1.0
