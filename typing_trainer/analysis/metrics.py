from typing_trainer.core.errors import InvalidIntervalError
from typing_trainer.types import DifferenceAnalysis, Metrics

CHARACTERS_PER_WORD = 5
MS_PER_MINUTE = 60000
MIN_INTERVAL_MS = 1


class MetricsEngine:
    """Turns a difference analysis and a time interval into speed and accuracy figures.

    Timestamps are epoch milliseconds. Every method is a pure function of its arguments.
    """

    @staticmethod
    def without_interval(analysis: DifferenceAnalysis) -> Metrics:
        """Metrics for an analysis observed at a single instant: accuracy only, every rate zero."""
        return Metrics(wpm=0.0, accuracy=round(analysis.accuracy, 2), duration=0.0, error_rate=0.0, net_wpm=0.0)

    def compute_metrics(self, analysis: DifferenceAnalysis, start_time: int, end_time: int) -> Metrics:
        duration_minutes = (end_time - start_time) / MS_PER_MINUTE
        if duration_minutes <= 0:
            raise InvalidIntervalError(f"Interval must be positive, got {end_time - start_time} ms")

        total_characters = analysis.correct_characters + analysis.incorrect_characters
        error_count = len(analysis.errors)
        wpm = self.calculate_wpm(total_characters, duration_minutes)

        return Metrics(
            wpm=wpm,
            accuracy=round(analysis.accuracy, 2),
            duration=duration_minutes,
            error_rate=self.calculate_error_rate(error_count, duration_minutes),
            net_wpm=self.calculate_net_wpm(wpm, error_count, duration_minutes),
        )

    @staticmethod
    def calculate_wpm(total_characters: int, duration_minutes: float) -> float:
        words = total_characters / CHARACTERS_PER_WORD
        return round(words / duration_minutes, 2)

    @staticmethod
    def calculate_error_rate(error_count: int, duration_minutes: float) -> float:
        return round(error_count / duration_minutes, 2)

    @staticmethod
    def calculate_net_wpm(gross_wpm: float, error_count: int, duration_minutes: float) -> float:
        return round(max(0.0, gross_wpm - error_count / duration_minutes / CHARACTERS_PER_WORD), 2)
