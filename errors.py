class FinanceError(Exception):
    status_code = 400
    kind = 'error'

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'success': False, 'error': self.kind, 'message': self.message}


class Unauthorized(FinanceError):
    """No logged-in user, or the record belongs to somebody else."""
    status_code = 401
    kind = 'unauthorized'

    def __init__(self, message='Unauthorized'):
        super().__init__(message)


class InvalidOperation(FinanceError):
    status_code = 400
    kind = 'invalid_operation'
