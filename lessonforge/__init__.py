"""lessonforge - orchestration core for generated learning content.

Turns a free-text request into structured learning artifacts:
- Skill registry: confidence-scored dispatch of requests to skills
- Workflow orchestrator: sequential steps with template references to prior outputs
- Execution wrapper: retry with exponential backoff and output validation
"""

__version__ = "0.1.0"
