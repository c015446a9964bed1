"""
Literal content of every file the setup writes.

Each template is written verbatim; nothing is interpolated, so the output is
byte-for-byte identical on every run.
"""

from dataclasses import dataclass
from typing import List

from crypto_analyzer_setup.config import Config

SCRIPT_MODE = 0o755
FILE_MODE = 0o644


@dataclass(frozen=True)
class Artifact:
    """A file to emit: path, literal content and permission bits."""

    path: str
    content: str
    mode: int = FILE_MODE


# ----------------------------------------------------------------
# React Frontend Scaffolding
# ----------------------------------------------------------------
PACKAGE_JSON = """{
  "name": "crypto-analyzer-frontend",
  "version": "1.0.0",
  "private": true,
  "dependencies": {
    "react": "^18.2.0",
    "react-dom": "^18.2.0",
    "react-scripts": "5.0.1",
    "lucide-react": "^0.263.1",
    "web-vitals": "^3.3.2"
  },
  "scripts": {
    "start": "react-scripts start",
    "build": "react-scripts build && cp build/* ../static/",
    "test": "react-scripts test",
    "eject": "react-scripts eject"
  },
  "eslintConfig": {
    "extends": [
      "react-app",
      "react-app/jest"
    ]
  },
  "browserslist": {
    "production": [
      ">0.2%",
      "not dead",
      "not op_mini all"
    ],
    "development": [
      "last 1 chrome version",
      "last 1 firefox version",
      "last 1 safari version"
    ]
  }
}
"""

INDEX_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8" />
    <link rel="icon" href="%PUBLIC_URL%/favicon.ico" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <meta name="theme-color" content="#000000" />
    <meta name="description" content="Crypto Trading Setup Analyzer - Real-time analysis" />
    <link rel="apple-touch-icon" href="%PUBLIC_URL%/logo192.png" />
    <link rel="manifest" href="%PUBLIC_URL%/manifest.json" />
    <title>Crypto Trading Setup Analyzer</title>
    <script src="https://cdn.tailwindcss.com"></script>
</head>
<body>
    <noscript>You need to enable JavaScript to run this app.</noscript>
    <div id="root"></div>
</body>
</html>
"""

MANIFEST_JSON = """{
  "short_name": "Crypto Analyzer",
  "name": "Crypto Trading Setup Analyzer",
  "icons": [
    {
      "src": "favicon.ico",
      "sizes": "64x64 32x32 24x24 16x16",
      "type": "image/x-icon"
    }
  ],
  "start_url": ".",
  "display": "standalone",
  "theme_color": "#000000",
  "background_color": "#ffffff"
}
"""

INDEX_JS = """import React from 'react';
import ReactDOM from 'react-dom/client';
import App from './App';

const root = ReactDOM.createRoot(document.getElementById('root'));
root.render(
  <React.StrictMode>
    <App />
  </React.StrictMode>
);
"""

# ----------------------------------------------------------------
# Runtime Configuration
# ----------------------------------------------------------------
ENV_FILE = """ENVIRONMENT=production
REDIS_URL=redis://redis:6379
LOG_LEVEL=INFO
PYTHONUNBUFFERED=1
"""

SYSTEMD_UNIT = """[Unit]
Description=Crypto Trading Setup Analyzer
After=network.target redis.service

[Service]
Type=simple
User=root
WorkingDirectory=/opt/crypto-analyzer
ExecStart=/usr/local/bin/docker-compose up
Restart=always
RestartSec=5
StandardOutput=journal
StandardError=journal

[Install]
WantedBy=multi-user.target
"""

LOGROTATE_RULE = """/opt/crypto-analyzer/logs/*.log {
    daily
    rotate 7
    compress
    delaycompress
    missingok
    notifempty
    create 0644 root root
    postrotate
        docker-compose restart crypto-analyzer
    endscript
}
"""

# ----------------------------------------------------------------
# Operational Scripts
# ----------------------------------------------------------------
BUILD_SCRIPT = r"""#!/bin/bash
echo "Building React frontend..."
npm install
npm run build

echo "Building Docker containers..."
docker-compose build

echo "Starting services..."
docker-compose up -d

echo "✅ Build completed successfully!"
"""

# Health check failure is reported but never fails the deploy.
DEPLOY_SCRIPT = r"""#!/bin/bash
echo "🚀 Deploying Crypto Trading Setup Analyzer..."

# Pull latest changes
git pull origin main

# Rebuild and restart
docker-compose down
docker-compose build --no-cache
docker-compose up -d

# Check health
sleep 10
curl -f http://localhost:8000/api/health || echo "❌ Health check failed"

echo "✅ Deployment completed!"
"""

BACKUP_SCRIPT = r"""#!/bin/bash
BACKUP_DIR="/opt/crypto-analyzer/backups"
DATE=$(date +%Y%m%d_%H%M%S)

mkdir -p $BACKUP_DIR

echo "📦 Creating backup..."
docker-compose exec redis redis-cli BGSAVE
tar -czf $BACKUP_DIR/backup_$DATE.tar.gz logs/ static/

# Keep only last 7 days of backups
find $BACKUP_DIR -name "backup_*.tar.gz" -mtime +7 -delete

echo "✅ Backup created: backup_$DATE.tar.gz"
"""

MONITOR_SCRIPT = r"""#!/bin/bash
echo "🔍 Crypto Analyzer Status:"
echo "=========================="

# Check Docker containers
echo "📦 Docker Containers:"
docker-compose ps

# Check system resources
echo -e "\n💻 System Resources:"
echo "CPU: $(top -bn1 | grep "Cpu(s)" | sed "s/.*, *\([0-9.]*\)%* id.*/\1/" | awk '{print 100 - $1"%"}')"
echo "Memory: $(free -h | awk 'NR==2{printf "%.1f%%", $3*100/$2 }')"
echo "Disk: $(df -h / | awk 'NR==2{print $5}')"

# Check service health
echo -e "\n🏥 Health Check:"
curl -s http://localhost:8000/api/health | python3 -m json.tool || echo "❌ Health check failed"

# Check logs
echo -e "\n📋 Recent Logs:"
docker-compose logs --tail=5 crypto-analyzer
"""


# ----------------------------------------------------------------
# Artifact Groups
# ----------------------------------------------------------------
def frontend_artifacts() -> List[Artifact]:
    """React scaffolding, relative to the install root."""
    return [
        Artifact("package.json", PACKAGE_JSON),
        Artifact("public/index.html", INDEX_HTML),
        Artifact("public/manifest.json", MANIFEST_JSON),
        Artifact("src/index.js", INDEX_JS),
    ]


def app_file_artifacts() -> List[Artifact]:
    """Environment file and the build/deploy/backup scripts."""
    return [
        Artifact(".env", ENV_FILE),
        Artifact("build.sh", BUILD_SCRIPT, SCRIPT_MODE),
        Artifact("deploy.sh", DEPLOY_SCRIPT, SCRIPT_MODE),
        Artifact("backup.sh", BACKUP_SCRIPT, SCRIPT_MODE),
    ]


def monitor_artifacts() -> List[Artifact]:
    return [Artifact("monitor.sh", MONITOR_SCRIPT, SCRIPT_MODE)]


def app_artifacts() -> List[Artifact]:
    """Everything written under the install root, in install order."""
    return frontend_artifacts() + app_file_artifacts() + monitor_artifacts()


def unit_artifact(config: Config) -> Artifact:
    return Artifact(f"{config.SYSTEMD_DIR}/{config.SERVICE_NAME}.service", SYSTEMD_UNIT)


def logrotate_artifact(config: Config) -> Artifact:
    return Artifact(f"{config.LOGROTATE_DIR}/{config.SERVICE_NAME}", LOGROTATE_RULE)


def system_artifacts(config: Config) -> List[Artifact]:
    """Files written outside the install root, as absolute paths."""
    return [unit_artifact(config), logrotate_artifact(config)]
