"""
Main controller module that initializes and runs the Auto Scaling Group
attachment operator.

Run with: kopf run -m attachment_controller.controller
"""

from . import handlers  # This will import and register all kopf handlers
