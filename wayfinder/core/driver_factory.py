"""
Driver Factory - Chrome WebDriver creation.

Builds a Selenium Chrome driver from a BrowserConfig. The default page
load strategy is "eager": driver.get() returns at DOMContentLoaded and
the ReadinessDetector judges everything after that.
"""

from typing import Optional
import warnings

from selenium import webdriver
from selenium.webdriver.chrome.options import Options as ChromeOptions

from wayfinder.core.config import BrowserConfig

WebDriverType = webdriver.Chrome


def create_driver(config: Optional[BrowserConfig] = None) -> WebDriverType:
    """
    Create a Chrome WebDriver instance.

    Args:
        config: Browser options (defaults to headless 1920x1080)

    Returns:
        Configured WebDriver

    Example:
        >>> driver = create_driver(BrowserConfig(headless=False))
        >>> driver.get("https://example.com")
    """
    config = config or BrowserConfig()
    driver = webdriver.Chrome(options=build_chrome_options(config))
    driver.set_script_timeout(config.script_timeout_ms / 1000)
    driver.set_page_load_timeout(config.page_load_timeout_ms / 1000)
    _hide_webdriver_flag(driver)
    return driver


def build_chrome_options(config: BrowserConfig) -> ChromeOptions:
    """Translate a BrowserConfig into ChromeOptions."""
    options = ChromeOptions()

    if config.headless:
        options.add_argument("--headless=new")

    options.add_argument("--no-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument("--disable-gpu")
    options.add_argument("--disable-extensions")
    options.add_argument("--disable-blink-features=AutomationControlled")
    options.add_argument(f"--window-size={config.window_width},{config.window_height}")
    options.add_experimental_option("excludeSwitches", ["enable-automation"])
    options.add_experimental_option("useAutomationExtension", False)

    if config.user_agent:
        options.add_argument(f"--user-agent={config.user_agent}")

    if config.disable_images:
        options.add_argument("--blink-settings=imagesEnabled=false")

    for arg in config.extra_args:
        options.add_argument(arg)

    options.page_load_strategy = config.page_load_strategy
    return options


def _hide_webdriver_flag(driver: WebDriverType) -> None:
    """Remove navigator.webdriver so pages behave as for a normal visitor."""
    try:
        driver.execute_cdp_cmd(
            "Page.addScriptToEvaluateOnNewDocument",
            {
                "source": """
                    Object.defineProperty(navigator, 'webdriver', {
                        get: () => undefined
                    })
                """
            }
        )
    except Exception as e:
        warnings.warn(
            f"Could not hide navigator.webdriver: {e}. Continuing without it.",
            UserWarning
        )
