from dataclasses import dataclass
from typing import List, Tuple, Union


@dataclass(frozen=True)
class Detection:
    """
    One labeled box in original image pixel coordinates.
    """

    class_id: int
    confidence: float
    x1: float
    y1: float
    x2: float
    y2: float
    label: str = ""

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x1, self.y1, self.x2, self.y2

    def area(self) -> float:
        return max(0.0, self.x2 - self.x1) * max(0.0, self.y2 - self.y1)

    def as_row(self) -> List[Union[float, str]]:
        """Result row `[x1, y1, x2, y2, label, confidence]` for JSON consumers."""
        return [self.x1, self.y1, self.x2, self.y2, self.label, self.confidence]
