from codeforge.durable.steps import InlineStepRunner, StepRunner

__all__ = ["InlineStepRunner", "StepRunner"]
