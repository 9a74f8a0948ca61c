"""
guidget/toolkit.py

Knowledge about the GUI toolkits the analysis recognises: widget classes,
listener interfaces (with their callback methods), adapter classes and the
registration methods that attach a listener to a widget.

Covers AWT/Swing, SWT and JavaFX by simple class name. Projects using
custom widget hierarchies can extend the defaults through
``Toolkit.with_extras`` (see ``guidget.config``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional


SWING_WIDGETS = frozenset({
    "AbstractButton", "JButton", "JToggleButton", "JCheckBox", "JRadioButton",
    "JMenuItem", "JCheckBoxMenuItem", "JRadioButtonMenuItem", "JMenu", "JMenuBar",
    "JPopupMenu", "JComboBox", "JList", "JTextField", "JFormattedTextField",
    "JPasswordField", "JTextArea", "JTextPane", "JEditorPane", "JTextComponent",
    "JSpinner", "JSlider", "JScrollBar", "JTable", "JTree", "JTabbedPane",
    "JProgressBar", "JColorChooser", "JFileChooser", "JToolBar", "JLabel",
    "JComponent", "JPanel", "JFrame", "JDialog", "JWindow", "JInternalFrame",
})

AWT_WIDGETS = frozenset({
    "Button", "Checkbox", "CheckboxMenuItem", "Choice", "List", "TextField",
    "TextArea", "TextComponent", "MenuItem", "Menu", "Scrollbar", "Frame",
    "Dialog", "Panel", "Canvas", "Label",
})

SWT_WIDGETS = frozenset({
    "Combo", "Text", "Scale", "Slider", "Spinner", "Tree", "Table", "ToolItem",
    "Shell", "Link", "CCombo", "StyledText",
})

JAVAFX_WIDGETS = frozenset({
    "CheckBox", "RadioButton", "ToggleButton", "ComboBox", "ChoiceBox",
    "ListView", "TableView", "TreeView", "Hyperlink", "ColorPicker",
    "DatePicker", "MenuButton", "SplitMenuButton",
})

DEFAULT_WIDGET_TYPES = SWING_WIDGETS | AWT_WIDGETS | SWT_WIDGETS | JAVAFX_WIDGETS

# interface -> ((callback, event type), ...)
DEFAULT_LISTENER_INTERFACES: dict[str, tuple[tuple[str, str], ...]] = {
    "ActionListener": (("actionPerformed", "ActionEvent"),),
    "ItemListener": (("itemStateChanged", "ItemEvent"),),
    "ChangeListener": (("stateChanged", "ChangeEvent"),),
    "ListSelectionListener": (("valueChanged", "ListSelectionEvent"),),
    "TreeSelectionListener": (("valueChanged", "TreeSelectionEvent"),),
    "CaretListener": (("caretUpdate", "CaretEvent"),),
    "AdjustmentListener": (("adjustmentValueChanged", "AdjustmentEvent"),),
    "TextListener": (("textValueChanged", "TextEvent"),),
    "PropertyChangeListener": (("propertyChange", "PropertyChangeEvent"),),
    "MouseWheelListener": (("mouseWheelMoved", "MouseWheelEvent"),),
    "DocumentListener": (
        ("insertUpdate", "DocumentEvent"),
        ("removeUpdate", "DocumentEvent"),
        ("changedUpdate", "DocumentEvent"),
    ),
    "MouseListener": (
        ("mouseClicked", "MouseEvent"),
        ("mousePressed", "MouseEvent"),
        ("mouseReleased", "MouseEvent"),
        ("mouseEntered", "MouseEvent"),
        ("mouseExited", "MouseEvent"),
    ),
    "MouseMotionListener": (
        ("mouseDragged", "MouseEvent"),
        ("mouseMoved", "MouseEvent"),
    ),
    "KeyListener": (
        ("keyTyped", "KeyEvent"),
        ("keyPressed", "KeyEvent"),
        ("keyReleased", "KeyEvent"),
    ),
    "FocusListener": (
        ("focusGained", "FocusEvent"),
        ("focusLost", "FocusEvent"),
    ),
    "MenuListener": (
        ("menuSelected", "MenuEvent"),
        ("menuDeselected", "MenuEvent"),
        ("menuCanceled", "MenuEvent"),
    ),
    "WindowListener": (
        ("windowOpened", "WindowEvent"),
        ("windowClosing", "WindowEvent"),
        ("windowClosed", "WindowEvent"),
        ("windowIconified", "WindowEvent"),
        ("windowDeiconified", "WindowEvent"),
        ("windowActivated", "WindowEvent"),
        ("windowDeactivated", "WindowEvent"),
    ),
    "SelectionListener": (
        ("widgetSelected", "SelectionEvent"),
        ("widgetDefaultSelected", "SelectionEvent"),
    ),
    "ModifyListener": (("modifyText", "ModifyEvent"),),
    "EventHandler": (("handle", "Event"),),
}

DEFAULT_ADAPTERS: dict[str, tuple[str, ...]] = {
    "MouseAdapter": ("MouseListener", "MouseMotionListener", "MouseWheelListener"),
    "MouseMotionAdapter": ("MouseMotionListener",),
    "KeyAdapter": ("KeyListener",),
    "FocusAdapter": ("FocusListener",),
    "WindowAdapter": ("WindowListener",),
    "SelectionAdapter": ("SelectionListener",),
}

# Registration methods that do not follow the add<X>Listener convention.
DEFAULT_REGISTRATION_METHODS: dict[str, str] = {
    "setOnAction": "EventHandler",
    "setOnMouseClicked": "EventHandler",
    "setOnMousePressed": "EventHandler",
    "setOnMouseReleased": "EventHandler",
    "setOnKeyPressed": "EventHandler",
    "setOnKeyReleased": "EventHandler",
    "setOnKeyTyped": "EventHandler",
}

# Configuration calls whose only purpose is to tag a widget for a shared listener.
ACTION_CMD_METHOD_NAMES = ("setActionCommand", "setName")

_REGISTRATION_RE = re.compile(r"^(?:add|set)(\w*Listener)$")


@dataclass(frozen=True)
class Toolkit:
    """Widget and listener vocabulary used by the analyses."""

    widget_types: frozenset[str] = DEFAULT_WIDGET_TYPES
    listener_interfaces: dict[str, tuple[tuple[str, str], ...]] = field(
        default_factory=lambda: dict(DEFAULT_LISTENER_INTERFACES))
    adapters: dict[str, tuple[str, ...]] = field(default_factory=lambda: dict(DEFAULT_ADAPTERS))
    registration_methods: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_REGISTRATION_METHODS))
    action_command_methods: tuple[str, ...] = ACTION_CMD_METHOD_NAMES

    def with_extras(
        self,
        widget_types: Iterable[str] = (),
        listener_interfaces: Optional[dict[str, tuple[tuple[str, str], ...]]] = None,
    ) -> Toolkit:
        """Copy of this toolkit that also knows the given widget types / interfaces."""
        interfaces = dict(self.listener_interfaces)
        interfaces.update(listener_interfaces or {})
        return Toolkit(
            widget_types=self.widget_types | frozenset(widget_types),
            listener_interfaces=interfaces,
            adapters=dict(self.adapters),
            registration_methods=dict(self.registration_methods),
            action_command_methods=self.action_command_methods,
        )

    def is_widget_type(self, type_name: Optional[str]) -> bool:
        return bool(type_name) and type_name in self.widget_types

    def is_listener_interface(self, type_name: Optional[str]) -> bool:
        return bool(type_name) and type_name in self.listener_interfaces

    def interface_methods(self, type_name: str) -> tuple[tuple[str, str], ...]:
        return self.listener_interfaces.get(type_name, ())

    def adapter_interfaces(self, type_name: Optional[str]) -> tuple[str, ...]:
        return self.adapters.get(type_name or "", ())

    def registration_interface(self, method_name: Optional[str]) -> Optional[str]:
        """
        Listener interface expected by a registration method, by name.

        ``addActionListener`` -> ``ActionListener``; ``setOnAction`` ->
        ``EventHandler``. Returns None for any other method.
        """
        if not method_name:
            return None
        if method_name in self.registration_methods:
            return self.registration_methods[method_name]
        match = _REGISTRATION_RE.match(method_name)
        return match.group(1) if match else None

    def is_action_command_method(self, method_name: Optional[str]) -> bool:
        return method_name in self.action_command_methods


TOOLKIT = Toolkit()
