"""
Simple Logger for the contest entry engine.
Provides clean, user-friendly logs by default with optional detailed mode.
"""

from loguru import logger


class SimpleLogger:
    """
    Conditional logger that shows simple one-liner logs by default,
    or detailed logs when detailed_logs=True.

    Simple mode: Only major events (attempt start, outcome, skip reasons)
    Detailed mode: Full technical details (fields, checkboxes, steps)
    """

    def __init__(self, detailed: bool = False):
        self.detailed = detailed

    def set_detailed(self, detailed: bool):
        """Update detailed logging mode."""
        self.detailed = detailed

    # === ALWAYS SHOWN (both simple and detailed) ===

    def attempt_start(self, contest_label: str, profile_id: str, index: int = 0, total: int = 0):
        """Log start of an entry attempt - always shown."""
        display = contest_label[:60] + "..." if len(contest_label) > 60 else contest_label
        counter = f"[{index}/{total}] " if total else ""
        logger.info(f"📍 {counter}{display} (profile {profile_id})")

    def attempt_success(self, status: str, detail: str = ""):
        """Log a successful entry - always shown."""
        detail_info = f" ({detail[:60]})" if detail else ""
        logger.success(f"✅ Entry {status}{detail_info}")

    def attempt_failed(self, reason: str):
        """Log a failed entry - always shown."""
        logger.error(f"❌ Failed: {reason[:80]}")

    def attempt_skipped(self, reason: str):
        """Log a skipped entry - always shown."""
        logger.warning(f"⏭️ Skipped: {reason[:60]}")

    def step_simple(self, step: int, action: str, target: str = ""):
        """Log step in simple mode - concise one-liner."""
        target_info = f" → {target[:30]}" if target else ""
        logger.info(f"   Step {step}: {action}{target_info}")

    def summary(self, successful: int, failed: int, skipped: int, time_sec: float):
        """Log final summary - always shown."""
        logger.info(f"📊 Done: {successful} entered, {failed} failed, {skipped} skipped ({time_sec:.0f}s)")

    # === DETAILED MODE ===
    # These always log to file (DEBUG level captures all).
    # Console display depends on the --debug flag.

    def detail(self, message: str):
        """Log detailed message - always to file, console if debug mode."""
        logger.debug(message)

    def detail_success(self, message: str):
        """Log detailed success - always to file, console if debug mode."""
        logger.debug(f"✓ {message}")

    def detail_warning(self, message: str):
        """Log detailed warning - always to file, console if debug mode."""
        logger.debug(f"⚠ {message}")


# Global simple logger instance - configured by the CLI
slog = SimpleLogger(detailed=False)
