"""Command line interface for deploy-orchestrator"""
