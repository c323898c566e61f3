"""Test package for the Mental Math Trainer.

Core tests drive the session controller with a fake clock and a polled
scheduler, so no test waits in real time. The UI smoke tests run pygame
with the SDL dummy video driver. Run ``pytest`` from the project root.
"""
