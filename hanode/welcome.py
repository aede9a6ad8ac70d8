"""The help page served at ``/`` by the git server."""

from html import escape

from hanode.git_repo import GitServerConfig


def render_welcome_page(config: GitServerConfig) -> str:
    remote_url = f"{config.public_url.rstrip('/')}/git/{config.repo_name}"
    user = escape(config.username)
    password = escape(config.password)
    repo_location = escape(str(config.repo_path))
    deploy_path = escape(str(config.deploy_path))
    branches = ", ".join(f"<code>{escape(b)}</code>" for b in config.deploy_branches)

    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>Hanode Git Repository</title>
    <style>
        body {{ font-family: Arial, sans-serif; margin: 40px; line-height: 1.6; }}
        code {{ background: #f4f4f4; padding: 2px 5px; border-radius: 3px; }}
        pre {{ background: #f4f4f4; padding: 10px; border-radius: 3px; overflow-x: auto; }}
        .container {{ max-width: 800px; margin: 0 auto; }}
        h1 {{ color: #333; }}
        .instruction {{ margin-bottom: 20px; }}
        .note {{ color: #e74c3c; }}
    </style>
</head>
<body>
    <div class="container">
        <h1>Git Repository Access</h1>
        <p>This server hosts a git repository that can be accessed via HTTP.</p>

        <div class="instruction">
            <h2>Authentication</h2>
            <p>When prompted, use these credentials:</p>
            <ul>
                <li>Username: <code>{user}</code></li>
                <li>Password: <code>{password}</code></li>
            </ul>
        </div>

        <div class="instruction">
            <h2>Using Git</h2>
            <p>Add the repository as a remote using:</p>
            <code>git remote add hanode {escape(remote_url)}</code>
            <p>Then push your code:</p>
            <code>git push hanode YOUR_BRANCH</code>
            <p class="note">Only pushes to {branches} are deployed.</p>
        </div>

        <div class="instruction">
            <h2>Repository Information</h2>
            <p>The repository is located at:</p>
            <code>{repo_location}</code>
            <p>Pushed code is automatically deployed to:</p>
            <code>{deploy_path}</code>
        </div>
    </div>
</body>
</html>
"""
