"""Flask CLI commands."""
import jwt


class TestCliCommands:

    def test_issue_token(self, app):
        runner = app.test_cli_runner()
        result = runner.invoke(args=['issue-token', '--user-id', '7', '--tenant-id', '3', '--role', 'warehouse'])
        assert result.exit_code == 0
        claims = jwt.decode(result.output.strip(), app.config['SECRET_KEY'], algorithms=['HS256'])
        assert claims['sub'] == '7'
        assert claims['tenant_id'] == 3
        assert claims['role'] == 'warehouse'

    def test_customer_role_needs_customer_id(self, app):
        runner = app.test_cli_runner()
        result = runner.invoke(args=['issue-token', '--user-id', '7', '--tenant-id', '3', '--role', 'customer'])
        assert result.exit_code != 0

    def test_init_db(self, app, session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=['init-db'])
        assert result.exit_code == 0
        assert 'Database tables created.' in result.output
