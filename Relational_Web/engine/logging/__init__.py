from .logger import flush_metrics, log_model, log_record

__all__ = ["flush_metrics", "log_model", "log_record"]
