"""pio2nix - PlatformIO 依赖锁定文件生成器"""

__version__ = "0.3.0"
