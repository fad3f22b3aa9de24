from setuptools import setup, find_packages
import os

long_description = ""
if os.path.exists("README.md"):
    with open("README.md", "r", encoding="utf-8") as fh:
        long_description = fh.read()

setup(
    # Basic metadata
    name='core-commerce',
    version='0.1.0',

    # Description
    description='Async PostgreSQL core and user domain for e-commerce services.',
    long_description=long_description,
    long_description_content_type="text/markdown",

    # Package structure
    packages=find_packages(include=['core_commerce', 'core_commerce.*']),

    # Python requirements
    python_requires=">=3.9",

    # Dependencies
    install_requires=[
        'SQLAlchemy[asyncio]>=2.0.0',  # greenlet for the async engine
        'tenacity>=8.2.0',
        'asyncpg>=0.28.0',
        'pydantic>=2.5.0',
        'pydantic-settings>=2.0.0',
        'python-dotenv>=1.0.0',  # .env support for DatabaseSettings
        'passlib>=1.7.4',
    ],

    # Optional dependencies
    extras_require={
        'dev': [
            'pytest>=7.0.0',
            'pytest-asyncio>=0.21.0',
        ]
    },

    include_package_data=True,

    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Database",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],

    keywords="postgresql, database, sqlalchemy, async, migrations, ecommerce",
)
