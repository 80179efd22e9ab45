from llm_trace_replay.api.app import create_app

__all__ = ["create_app"]
