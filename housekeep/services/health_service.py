"""
Repository health analysis for housekeep scans.

Derives from files already in the working tree:
- The project type and framework, from marker files (pom.xml, go.mod,
  requirements.txt, composer.json, package.json and lockfiles)
- The Spring Boot version of a Maven project
- A health score starting at 100, lowered by TODO/FIXME markers, JUnit 4
  dependencies and old Spring Boot generations

Maven files are read with the same bounded regex windows as version
reconciliation; nothing here runs a build tool or queries a registry.
"""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .version_service import PARENT_PATTERN, VERSION_PATTERN

logger = logging.getLogger(__name__)

BASE_SCORE = 100
TODOS_PER_POINT = 5
MAX_TODO_PENALTY = 20
JUNIT_PENALTY = 5
SPRING_BOOT_PENALTIES = (("1.", 40), ("2.", 20))

SPRING_BOOT_GROUP = "org.springframework.boot"
SPRING_BOOT_DEPENDENCY = re.compile(
    r"<groupId>org\.springframework\.boot</groupId>\s*"
    r"<artifactId>spring-boot(?:-starter)?</artifactId>\s*"
    r"<version>(.*?)</version>",
    re.DOTALL,
)
SPRING_BOOT_BOM = re.compile(
    r"<artifactId>spring-boot-dependencies</artifactId>\s*<version>(.*?)</version>",
    re.DOTALL,
)
DEPENDENCY_PATTERN = re.compile(r"<dependency>(.*?)</dependency>", re.DOTALL)
GROUP_ID_PATTERN = re.compile(r"<groupId>(.*?)</groupId>")
ARTIFACT_ID_PATTERN = re.compile(r"<artifactId>(.*?)</artifactId>")

# Blocks whose <dependency> entries are not dependencies of the project itself
NON_PROJECT_BLOCKS = [
    re.compile(rf"<{name}>.*?</{name}>", re.DOTALL)
    for name in ("dependencyManagement", "build", "profiles")
]

PYTHON_MARKERS = (
    "requirements.txt", "setup.py", "pyproject.toml", "Pipfile", "setup.cfg", "poetry.lock",
)
JS_MARKERS = (
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("package-lock.json", "npm"),
    ("package.json", "npm"),
)

# (any of these packages, framework), most specific first
JS_FRAMEWORKS = [
    (("next",), "Next.js"),
    (("nuxt",), "Nuxt.js"),
    (("@angular/core",), "Angular"),
    (("vue",), "Vue.js"),
    (("react",), "React"),
    (("svelte", "@sveltejs/kit"), "Svelte"),
    (("express",), "Express"),
    (("fastify",), "Fastify"),
    (("nest", "@nestjs/core"), "NestJS"),
    (("koa",), "Koa"),
    (("electron",), "Electron"),
]
REACT_FRAMEWORKS = [
    (("gatsby",), "Gatsby"),
    (("remix", "@remix-run/react"), "Remix"),
]
GO_FRAMEWORKS = [
    ("github.com/gin-gonic/gin", "Gin"),
    ("github.com/gofiber/fiber", "Fiber"),
    ("github.com/labstack/echo", "Echo"),
    ("github.com/gorilla/mux", "Gorilla Mux"),
    ("github.com/beego/beego", "Beego"),
    ("github.com/go-chi/chi", "Chi"),
    ("github.com/revel/revel", "Revel"),
    ("google.golang.org/grpc", "gRPC"),
]
PYTHON_FRAMEWORKS = [
    (("django",), "Django"),
    (("flask",), "Flask"),
    (("fastapi",), "FastAPI"),
    (("streamlit",), "Streamlit"),
    (("pytorch", "torch"), "PyTorch"),
    (("tensorflow",), "TensorFlow"),
    (("pandas", "numpy"), "Data Science"),
]
PHP_FRAMEWORKS = [
    (("laravel/framework",), "Laravel"),
    (("symfony/framework-bundle", "symfony/symfony"), "Symfony"),
    (("yiisoft/yii2",), "Yii2"),
    (("cakephp/cakephp",), "CakePHP"),
    (("codeigniter4/framework",), "CodeIgniter"),
    (("slim/slim",), "Slim"),
    (("laminas/laminas-mvc", "zendframework/zend-mvc"), "Laminas/Zend"),
    (("drupal/core",), "Drupal"),
    (("wordpress/core-dev",), "WordPress"),
    (("magento/product-community-edition", "magento/magento2-base"), "Magento"),
]


@dataclass(frozen=True)
class MavenDependency:
    group_id: str
    artifact_id: str
    version: str = ""


@dataclass(frozen=True)
class HealthReport:
    """Health figures of one repository."""
    score: int
    project_type: str
    framework: str = ""
    spring_boot_version: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'health_score': self.score,
            'project_type': self.project_type,
            'framework': self.framework,
            'spring_boot_version': self.spring_boot_version,
        }


def _read(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding='utf-8', errors='replace')
    except OSError as e:
        logger.debug(f"Could not read {path}: {e}")
        return None


def _read_json(path: Path) -> Dict[str, Any]:
    text = _read(path)
    if text is None:
        return {}
    try:
        data = json.loads(text)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _first_match(names, table) -> str:
    for keys, framework in table:
        if any(key in names for key in keys):
            return framework
    return ""


def _first_match_text(text: str, table) -> str:
    for keys, framework in table:
        if any(key in text for key in keys):
            return framework
    return ""


def _package_names(data: Dict[str, Any], *sections: str) -> set:
    names = set()
    for section in sections:
        entries = data.get(section)
        if isinstance(entries, dict):
            names.update(entries)
    return names


def detect_js_framework(root: Path) -> str:
    names = _package_names(_read_json(root / "package.json"), 'dependencies', 'devDependencies')
    framework = _first_match(names, JS_FRAMEWORKS)
    if framework == "React":
        return _first_match(names, REACT_FRAMEWORKS) or framework
    return framework


def detect_go_framework(root: Path) -> str:
    content = _read(root / "go.mod") or ""
    for module, framework in GO_FRAMEWORKS:
        if module in content:
            return framework
    return "Go"


def detect_python_framework(root: Path) -> str:
    requirements = _read(root / "requirements.txt")
    if requirements is not None:
        framework = _first_match_text(requirements.lower(), PYTHON_FRAMEWORKS)
        if framework:
            return framework

    pyproject = _read(root / "pyproject.toml")
    if pyproject is not None:
        framework = _first_match_text(pyproject.lower(), PYTHON_FRAMEWORKS[:3])
        if framework:
            return framework
    return "Python"


def detect_php_framework(root: Path) -> str:
    names = _package_names(_read_json(root / "composer.json"), 'require', 'require-dev')
    return _first_match(names, PHP_FRAMEWORKS) or "PHP"


def _is_python_project(root: Path) -> bool:
    if any((root / marker).exists() for marker in PYTHON_MARKERS):
        return True
    return any(p.is_file() and p.suffix == ".py" for p in root.iterdir())


def detect_project_type(root: str, version_file: str = "pom.xml") -> Tuple[str, str]:
    """
    Detect (project_type, framework) from marker files in the repository root.

    Markers are checked in order: Maven, Go, Python, PHP, then pnpm, yarn
    and npm. Maven frameworks come from Spring Boot detection instead.
    """
    path = Path(root)
    if (path / version_file).is_file():
        return "maven", ""
    if (path / "go.mod").is_file():
        return "go", detect_go_framework(path)
    if _is_python_project(path):
        return "python", detect_python_framework(path)
    if (path / "composer.json").is_file():
        return "php", detect_php_framework(path)
    for marker, project_type in JS_MARKERS:
        if (path / marker).is_file():
            return project_type, detect_js_framework(path)
    return "unknown", ""


def project_dependencies(content: str) -> List[MavenDependency]:
    """Dependencies declared by the project itself (managed and plugin ones excluded)."""
    excluded = [m.span() for pattern in NON_PROJECT_BLOCKS for m in pattern.finditer(content)]
    dependencies = []
    for match in DEPENDENCY_PATTERN.finditer(content):
        start, end = match.span()
        if any(start >= lo and end <= hi for lo, hi in excluded):
            continue
        block = match.group(1)
        group = GROUP_ID_PATTERN.search(block)
        artifact = ARTIFACT_ID_PATTERN.search(block)
        version = VERSION_PATTERN.search(block)
        dependencies.append(MavenDependency(
            group_id=group.group(1).strip() if group else "",
            artifact_id=artifact.group(1).strip() if artifact else "",
            version=version.group(1).strip() if version else "",
        ))
    return dependencies


def _literal(version: str) -> Optional[str]:
    version = version.strip()
    if not version or "$" in version:
        return None
    return version


def spring_boot_version(content: str, dependencies: Optional[List[MavenDependency]] = None) -> Optional[str]:
    """
    Spring Boot version of a Maven project, or None.

    Looked up in order: an explicit spring-boot dependency, the
    spring-boot-dependencies BOM, a spring-boot parent, then any
    org.springframework.boot dependency with a literal version.
    """
    for pattern in (SPRING_BOOT_DEPENDENCY, SPRING_BOOT_BOM):
        match = pattern.search(content)
        if match and _literal(match.group(1)):
            return _literal(match.group(1))

    parent = PARENT_PATTERN.search(content)
    if parent:
        block = parent.group(0)
        group = GROUP_ID_PATTERN.search(block)
        version = VERSION_PATTERN.search(block)
        if group and "spring-boot" in group.group(1) and version and _literal(version.group(1)):
            return _literal(version.group(1))

    if dependencies is None:
        dependencies = project_dependencies(content)
    for dependency in dependencies:
        if dependency.group_id == SPRING_BOOT_GROUP and _literal(dependency.version):
            return _literal(dependency.version)
    return None


def health_score(
    todo_count: int,
    dependencies: Sequence[MavenDependency] = (),
    spring_boot: Optional[str] = None
) -> int:
    """Score from 0 to 100; higher is healthier."""
    score = BASE_SCORE - min(todo_count // TODOS_PER_POINT, MAX_TODO_PENALTY)
    score -= JUNIT_PENALTY * sum(1 for d in dependencies if d.artifact_id == "junit")
    if spring_boot:
        for prefix, penalty in SPRING_BOOT_PENALTIES:
            if spring_boot.startswith(prefix):
                score -= penalty
                break
    return max(score, 0)


def analyze_health(root: str, todo_count: int, version_file: str = "pom.xml") -> HealthReport:
    """
    Build the HealthReport of one repository.

    Example:
        report = analyze_health("/path/to/repo", todo_count=12)
        print(report.score, report.project_type, report.framework)
    """
    project_type, framework = detect_project_type(root, version_file)

    dependencies: List[MavenDependency] = []
    spring_boot = None
    if project_type == "maven":
        content = _read(Path(root) / version_file)
        if content is not None:
            dependencies = project_dependencies(content)
            spring_boot = spring_boot_version(content, dependencies)
            if spring_boot and not framework:
                framework = "Spring Boot"

    return HealthReport(
        score=health_score(todo_count, dependencies, spring_boot),
        project_type=project_type,
        framework=framework,
        spring_boot_version=spring_boot,
    )
