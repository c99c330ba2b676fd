"""HTTP API for skill detection, workflows and the learning builder agent."""
