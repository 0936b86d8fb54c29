"""
Pipet — a companion pet that lives inside its host.

The pet turns host telemetry into vitals and a mood, talks to its owner
through a remote language model, and may run shell commands on the host on
the model's behalf under a deny-list, a deadline and an output cap.

Layers (bottom to top):
    1. Pet state store + mood classifier
    2. Command sandbox + request rate limiter
    3. Provider backends (Claude, Gemini)
    4. Brain (bounded tool-use loop)
"""

__version__ = "0.1.0"
