"""Serverless workflow orchestrator backend."""
