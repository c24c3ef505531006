"""
Curated catalog of installable tool provider templates
"""

from typing import List, Optional

from .models import CatalogTemplate

WORKSPACE_PLACEHOLDER = "${workspaceFolder}"

_SERVERS_REPO = "https://github.com/modelcontextprotocol/servers"

CATALOG: List[CatalogTemplate] = [
    CatalogTemplate(
        id="filesystem",
        name="Filesystem",
        description="Read, write, and manage files on the local filesystem",
        author="Anthropic",
        repository=_SERVERS_REPO,
        command="npx",
        args=["-y", "@modelcontextprotocol/server-filesystem@latest", WORKSPACE_PLACEHOLDER],
        category="file-system",
        tags=["files", "directories", "io"],
        featured=True,
    ),
    CatalogTemplate(
        id="github",
        name="GitHub",
        description="Interact with GitHub repositories, issues, and pull requests",
        author="Anthropic",
        repository=_SERVERS_REPO,
        command="npx",
        args=["-y", "@modelcontextprotocol/server-github@latest"],
        env={"GITHUB_PERSONAL_ACCESS_TOKEN": ""},
        category="development",
        tags=["git", "github", "vcs"],
        featured=True,
    ),
    CatalogTemplate(
        id="postgres",
        name="PostgreSQL",
        description="Query and manage PostgreSQL databases",
        author="Anthropic",
        repository=_SERVERS_REPO,
        command="npx",
        args=["-y", "@modelcontextprotocol/server-postgres@latest"],
        env={"POSTGRES_CONNECTION_STRING": ""},
        category="database",
        tags=["database", "sql", "postgres"],
        featured=True,
    ),
    CatalogTemplate(
        id="sqlite",
        name="SQLite",
        description="Query and manage SQLite databases",
        author="Anthropic",
        repository=_SERVERS_REPO,
        command="npx",
        args=["-y", "@modelcontextprotocol/server-sqlite@latest", "--db-path",
              f"{WORKSPACE_PLACEHOLDER}/database.db"],
        category="database",
        tags=["database", "sql", "sqlite"],
    ),
    CatalogTemplate(
        id="fetch",
        name="Fetch",
        description="Fetch and parse content from URLs",
        author="Anthropic",
        repository=_SERVERS_REPO,
        command="npx",
        args=["-y", "@modelcontextprotocol/server-fetch@latest"],
        category="web",
        tags=["http", "fetch", "web"],
    ),
    CatalogTemplate(
        id="puppeteer",
        name="Puppeteer",
        description="Browser automation and web scraping",
        author="Anthropic",
        repository=_SERVERS_REPO,
        command="npx",
        args=["-y", "@modelcontextprotocol/server-puppeteer@latest"],
        category="web",
        tags=["browser", "automation", "scraping"],
    ),
    CatalogTemplate(
        id="brave-search",
        name="Brave Search",
        description="Search the web using Brave Search API",
        author="Anthropic",
        repository=_SERVERS_REPO,
        command="npx",
        args=["-y", "@modelcontextprotocol/server-brave-search@latest"],
        env={"BRAVE_API_KEY": ""},
        category="web",
        tags=["search", "web"],
    ),
    CatalogTemplate(
        id="memory",
        name="Memory",
        description="Persistent memory storage for conversations",
        author="Anthropic",
        repository=_SERVERS_REPO,
        command="npx",
        args=["-y", "@modelcontextprotocol/server-memory@latest"],
        category="productivity",
        tags=["memory", "storage", "persistence"],
    ),
    CatalogTemplate(
        id="sequential-thinking",
        name="Sequential Thinking",
        description="Step-by-step reasoning and problem solving",
        author="Anthropic",
        repository=_SERVERS_REPO,
        command="npx",
        args=["-y", "@modelcontextprotocol/server-sequential-thinking@latest"],
        category="ai",
        tags=["reasoning", "thinking", "ai"],
    ),
    CatalogTemplate(
        id="everything",
        name="Everything",
        description="Fast file search using Everything search engine (Windows)",
        author="Community",
        command="npx",
        args=["-y", "@modelcontextprotocol/server-everything@latest"],
        category="file-system",
        tags=["search", "files", "windows"],
    ),
]


def get_catalog() -> List[CatalogTemplate]:
    return list(CATALOG)


def find_template(template_id: str) -> Optional[CatalogTemplate]:
    for template in CATALOG:
        if template.id == template_id:
            return template
    return None


def substitute_workspace(args: List[str], workspace_folder: str) -> List[str]:
    return [arg.replace(WORKSPACE_PLACEHOLDER, workspace_folder) for arg in args]
