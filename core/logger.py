import json
import logging
from pathlib import Path
from datetime import datetime
from typing import Dict, Optional


class ScanLogger:
    """
    Handles all logging operations for a scanner run:
    - Action logs (fingerprints, candidate scans, clicks, verifications)
    - Error logs
    - Screenshots captured while engaging widgets
    """

    def __init__(self, output_dir: Path, save_screenshots: bool = True):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.save_screenshots = save_screenshots

        # Create timestamped run directory
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        self.session_dir = self.output_dir / f"scan_{timestamp}"
        self.session_dir.mkdir(exist_ok=True)

        # Initialize log files
        self.main_log_file = self.session_dir / "scan_log.txt"
        self.action_log_file = self.session_dir / "actions_log.jsonl"  # JSON Lines format
        self.error_log_file = self.session_dir / "errors_log.txt"
        self.screenshot_dir = self.session_dir / "screenshots"

        self.action_counter = 0
        self.screenshot_counter = 0

        # Set up Python logging
        self._setup_python_logging()

        self.log_info("=" * 80)
        self.log_info(f"SCAN SESSION STARTED: {timestamp}")
        self.log_info("=" * 80)

    def _setup_python_logging(self):
        """Configure Python's logging module for error tracking"""
        self.logger = logging.getLogger(f"scanner.{self.session_dir}")
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
        file_handler = logging.FileHandler(self.error_log_file, encoding='utf-8')
        file_handler.setFormatter(formatter)
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(logging.WARNING)
        stream_handler.setFormatter(formatter)
        self.logger.addHandler(file_handler)
        self.logger.addHandler(stream_handler)

    def log_info(self, message: str):
        """Log informational message to main log file"""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        with open(self.main_log_file, 'a', encoding='utf-8') as f:
            f.write(f"[{timestamp}] {message}\n")

    def log_action(self, action_type: str, details: Dict):
        """Log structured action data in JSON Lines format"""
        self.action_counter += 1
        action_entry = {
            "action_id": self.action_counter,
            "timestamp": datetime.now().isoformat(),
            "action_type": action_type,
            "details": details
        }

        with open(self.action_log_file, 'a', encoding='utf-8') as f:
            f.write(json.dumps(action_entry, ensure_ascii=False, default=str) + '\n')

        self.log_info(f"ACTION #{self.action_counter}: {action_type} - {json.dumps(details, ensure_ascii=False, default=str)}")

    def log_error(self, error_type: str, error_message: str, context: Optional[Dict] = None):
        """Log error with context to errors_log.txt"""
        error_entry = f"{error_type}: {error_message}"
        if context:
            error_entry += f"\nContext: {json.dumps(context, indent=2, ensure_ascii=False, default=str)}"
        error_entry += "\n" + "-" * 80

        self.logger.error(error_entry)
        self.log_info(f"ERROR: {error_type} - {error_message}")

    def close(self):
        """Release the error log handlers."""
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

    def save_screenshot(self, screenshot_bytes: bytes, label: str) -> Optional[Path]:
        """Save a capture under the run directory. Returns None when disabled or empty."""
        if not self.save_screenshots or not screenshot_bytes:
            return None
        self.screenshot_dir.mkdir(exist_ok=True)
        self.screenshot_counter += 1
        safe_label = "".join(c if c.isalnum() or c in "-_" else "_" for c in label)[:40]
        path = self.screenshot_dir / f"{self.screenshot_counter:03d}_{safe_label}.jpg"
        path.write_bytes(screenshot_bytes)
        return path

    def log_fingerprint(self, url: str, result):
        self.log_action("fingerprint", {"url": url, **result.to_dict()})

    def log_attempt(self, url: str, record):
        self.log_action("engagement_attempt", {
            "url": url,
            "attempt": record.attempt_number,
            "strategy": record.candidate.source_strategy.name,
            "x": round(record.candidate.x, 1),
            "y": round(record.candidate.y, 1),
            "label": record.candidate.label,
            "outcome": record.outcome.value,
            "detail": record.detail,
        })

    def save_summary(self, summary: Dict) -> Path:
        """Save a JSON summary of the run."""
        summary_file = self.session_dir / "scan_summary.json"
        with open(summary_file, 'w', encoding='utf-8') as f:
            json.dump({
                "session_ended": datetime.now().isoformat(),
                "total_actions": self.action_counter,
                **summary
            }, f, indent=2, ensure_ascii=False, default=str)

        self.log_info("=" * 80)
        self.log_info("SCAN SESSION COMPLETED")
        self.log_info(f"Total actions logged: {self.action_counter}")
        self.log_info("=" * 80)
        return summary_file
