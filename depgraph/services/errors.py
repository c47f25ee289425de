"""
Request-level failures of the graph API.

Each carries a machine-readable kind and the HTTP status it maps to;
main.py renders them as {"error": kind, "details": detail}.
"""


class GraphRequestError(Exception):
    kind = "analysis_failed"
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class MissingParameterError(GraphRequestError):
    kind = "missing_parameter"
    status_code = 400


class ProjectNotFoundError(GraphRequestError):
    kind = "project_not_found"
    status_code = 404


class AnalysisFailedError(GraphRequestError):
    kind = "analysis_failed"
    status_code = 500
