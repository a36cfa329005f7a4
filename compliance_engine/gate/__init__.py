from .preview_gate import PreviewGate

__all__ = ["PreviewGate"]
